# cli_runner.py
import argparse
import asyncio
import sys

from .core.command import CopyCommand, InvocationContext, OPTION_NAMES
from .core.copy_service import CopyService
from .core.host.drission_host import DrissionHost
from .core.loader import ConfigLoader
from .core.log_util import LogFactory
from .core.message_channel import MessageChannel


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tabclip", description="Copy browser tabs to the clipboard")
    parser.add_argument("--profile", default=".", help="目录，包含 tabclip.yml 和 .env")
    parser.add_argument("--target", default="tab", help="tab | window | all")
    parser.add_argument("--format", default=None, help="jinja2 模板，例如 '{{ title }} {{ url }}'")
    parser.add_argument("--format-id", type=int, default=0)
    parser.add_argument("--newline", choices=["default", "CRLF", "CR", "LF"], default=None)
    parser.add_argument("--separator", default=None)
    parser.add_argument("--option", action="append", default=[], choices=OPTION_NAMES,
                        help="打开一个选项，可重复")
    parser.add_argument("--headless", action="store_true")
    return parser


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = ConfigLoader(args.profile).load()
    LogFactory.set_log_dir(config.logging.log_dir)
    LogFactory.set_level(config.logging.level)

    channel = MessageChannel()
    host = DrissionHost(
        channel,
        profile_path=config.host.profile_path,
        base_url=config.host.base_url,
        quirks=config.host.quirks,
    )
    service = CopyService(
        host,
        channel,
        preferences=config.preferences,
        writer=host.writer,
        surface_path=config.host.surface_path,
        control_paths=config.host.control_paths,
        log_config=config.logging,
    )

    # 命令行上给了任何格式参数，就按 extended 命令处理
    extended = bool(args.option) or args.newline is not None or args.separator is not None
    cmd = CopyCommand(
        target=args.target,
        format_id=args.format_id,
        format=args.format or config.preferences.format,
        invocation=InvocationContext(),
        extended=extended,
        newline=args.newline or config.preferences.newline,
        separator=args.separator if args.separator is not None else config.preferences.separator,
        options={name: True for name in args.option},
    )

    # 结束时不关闭浏览器
    await host.start(headless=args.headless or config.host.headless)
    result = await service.on_copy(cmd)

    await asyncio.to_thread(print, result.payload.text)
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
