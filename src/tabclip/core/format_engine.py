from typing import List, Optional

from jinja2 import BaseLoader, Environment

from .command import CopyCommand
from .host.host_adapter import TabInfo

DEFAULT_FORMAT = "{{ title }}{{ enter }}{{ url }}"


class FormatEngine:
    """
    默认的格式化协作者：每个标签页按 jinja2 模板渲染一次，再拼起来。

    模板可用变量：title, url, id, window_id, index, enter, separator, selection_text
    """

    def __init__(self, default_format: str = DEFAULT_FORMAT):
        self.env = Environment(loader=BaseLoader(), autoescape=False, keep_trailing_newline=True)
        self.default_format = default_format

    def render_tab(self, template_text: str, cmd: CopyCommand, tab: TabInfo, index: int = 0) -> str:
        template = self.env.from_string(template_text)
        context = {
            "title": tab.title,
            "url": tab.url,
            "id": tab.id,
            "window_id": tab.window_id,
            "index": index,
            "enter": cmd.enter or "\n",
            "separator": cmd.separator,
            "selection_text": cmd.selection_text,
        }
        return template.render(**context)

    def create_format_text(self, cmd: CopyCommand, tabs: List[TabInfo],
                           template_text: Optional[str] = None) -> str:
        """没有标签页时返回空字符串；多个标签页之间用 separator（若有）和换行分隔"""
        template_text = template_text or cmd.format or self.default_format
        enter = cmd.enter or "\n"
        rendered = [self.render_tab(template_text, cmd, tab, i) for i, tab in enumerate(tabs)]
        joiner = enter + cmd.separator + enter if cmd.separator else enter
        return joiner.join(rendered)
