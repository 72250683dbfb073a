"""结构化日志配置模块。

使用 structlog 提供结构化日志支持，支持 JSON 和控制台两种输出格式。
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from arb_sim.config import LogFormat, Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """配置结构化日志系统。

    根据配置设置日志级别和输出格式。
    """
    settings = settings or get_settings()

    # 设置标准库日志级别
    log_level = getattr(logging, settings.log_level)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # httpx 每个请求都打 INFO，压到 WARNING
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    # 共享处理器
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    # 根据格式选择渲染器
    if settings.log_format == LogFormat.JSON:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # 控制台格式输出（带颜色）
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """获取结构化日志记录器。

    Args:
        name: 日志记录器名称。如果为 None，则使用调用模块名。

    Returns:
        结构化日志记录器实例。
    """
    return structlog.get_logger(name)


# 便捷日志函数
def log_trade_execution(
    logger: structlog.stdlib.BoundLogger,
    *,
    trade_id: str,
    pair: str,
    status: str,
    net_profit: float,
    is_backtest: bool,
    **kwargs: Any,
) -> None:
    """记录模拟成交。回测成交只记 debug，避免刷屏。"""
    level = "debug" if is_backtest else "info"
    getattr(logger, level)(
        "trade_executed",
        trade_id=trade_id,
        pair=pair,
        status=status,
        net_profit=round(net_profit, 4),
        is_backtest=is_backtest,
        **kwargs,
    )


def log_llm_call(
    logger: structlog.stdlib.BoundLogger,
    *,
    model: str,
    success: bool,
    latency_ms: float,
    **kwargs: Any,
) -> None:
    """记录 LLM 调用。"""
    level = "info" if success else "warning"
    getattr(logger, level)(
        "llm_call",
        model=model,
        success=success,
        latency_ms=round(latency_ms, 2),
        **kwargs,
    )


def log_session_event(
    logger: structlog.stdlib.BoundLogger,
    *,
    event_type: str,
    mode: str,
    **kwargs: Any,
) -> None:
    """记录会话状态切换。"""
    logger.info(
        "session_event",
        event_type=event_type,
        mode=mode,
        **kwargs,
    )
