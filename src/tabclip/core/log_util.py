import os
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .log_config import LogConfig


# 过滤器：决定什么能上控制台
class ConsoleDisplayFilter(logging.Filter):
    def filter(self, record):
        # ERROR/CRITICAL 必须显示
        if record.levelno >= logging.ERROR:
            return True

        # 带 'echo' 标记的记录也显示
        if getattr(record, 'echo', False):
            return True

        return False


# ==========================================
# 1. LogFactory: 创建 Logger 和 Handler
# ==========================================
class LogFactory:
    _log_dir = "./logs"
    _formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )
    _default_level = logging.INFO

    @classmethod
    def set_log_dir(cls, path: str):
        cls._log_dir = path
        os.makedirs(cls._log_dir, exist_ok=True)

    @classmethod
    def set_level(cls, level: int):
        """设置全局默认日志级别"""
        cls._default_level = level

    @classmethod
    def get_logger(cls, logger_name: str, filename: str) -> logging.Logger:
        if not os.path.exists(cls._log_dir):
            os.makedirs(cls._log_dir, exist_ok=True)

        logger = logging.getLogger(logger_name)
        logger.setLevel(cls._default_level)
        logger.propagate = False

        if logger.handlers:
            return logger

        # 文件：收录所有级别
        file_path = os.path.join(cls._log_dir, filename)
        file_handler = RotatingFileHandler(
            file_path, maxBytes=10*1024*1024, backupCount=5, encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(cls._formatter)
        logger.addHandler(file_handler)

        # 控制台：INFO 进得来，再由过滤器把关
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.addFilter(ConsoleDisplayFilter())
        console_handler.setFormatter(cls._formatter)
        logger.addHandler(console_handler)

        return logger


# ==========================================
# 2. AutoLoggerMixin: 决定日志文件名 / 是否共享父 logger
# ==========================================
class AutoLoggerMixin:
    """
    智能日志 Mixin。

    优先级策略：
    1. 如果设置了 _parent_logger，直接使用（CopyService 把自己的 logger 分给下属组件）
    2. 如果设置了 _custom_log_filename = "yyy.log"，则文件名为 "yyy.log"
    3. 默认使用 类名.log
    """

    _custom_log_filename: Optional[str] = None

    _parent_logger: Optional[logging.Logger] = None
    _log_config: Optional['LogConfig'] = None
    _log_prefix_template: str = ""

    @property
    def logger(self) -> logging.Logger:
        # 懒加载：第一次访问时才初始化
        if not hasattr(self, '_internal_logger'):
            self._init_logger()
        return self._internal_logger

    def _init_logger(self):
        if self._parent_logger:
            self._internal_logger = self._parent_logger
            return

        filename = self._determine_log_filename()
        logger_name = f"{self.__class__.__name__}_{filename}"
        self._internal_logger = LogFactory.get_logger(logger_name, filename)

    def _determine_log_filename(self) -> str:
        if self._custom_log_filename:
            return self._custom_log_filename
        return f"{self.__class__.__name__}.log"

    def _share_logger(self, parent_logger: Optional[logging.Logger], log_config: Optional['LogConfig']):
        """挂到父组件的 logger 上（两者都提供时才生效）"""
        if parent_logger and log_config:
            self._parent_logger = parent_logger
            self._log_config = log_config
            self._log_prefix_template = log_config.prefix

    def _get_log_prefix(self) -> str:
        if not self._log_prefix_template:
            return ""
        return self._log_prefix_template.format(**self._get_log_context())

    def _get_log_context(self) -> dict:
        """日志上下文变量（子类可覆盖）"""
        return {}

    def _log(self, level: int, msg: str, *args, **kwargs):
        """带开关、级别检查和前缀的日志方法"""
        if self._log_config and not self._log_config.enabled:
            return

        if self._log_config and level < self._log_config.level:
            return

        prefix = self._get_log_prefix()
        prefixed_msg = f"{prefix} {msg}" if prefix else msg

        self.logger.log(level, prefixed_msg, *args, **kwargs)

    def echo(self, msg: str, *args, **kwargs):
        """
        既写日志文件，也输出到控制台。
        用法: self.echo("Copied %d tabs", 3)
        """
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        kwargs['extra']['echo'] = True

        self.logger.info(msg, *args, **kwargs)
