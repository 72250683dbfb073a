"""CLI 入口模块 - 跨交易所套利模拟器命令行接口。"""

import asyncio
import sys
from pathlib import Path

import click

from arb_sim import __version__
from arb_sim.backtest.runner import run_scenario
from arb_sim.backtest.types import SCENARIOS, BacktestResult, get_scenario
from arb_sim.config import Settings, get_settings
from arb_sim.export.report import write_trade_history
from arb_sim.market.feed import build_initial_market_state, build_random_source
from arb_sim.session.controller import SessionController, SessionSnapshot
from arb_sim.utils.logging import get_logger, setup_logging


@click.group(invoke_without_command=True)
@click.option("--version", "-v", is_flag=True, help="显示版本号")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """Arb Sim - 跨交易所加密货币套利模拟器。

    模拟多交易所报价，扫描价差机会，纸面执行并回放情景回测。
    """
    if version:
        click.echo(f"arb-sim version {__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option("--seconds", "-s", type=float, default=10.0, help="运行时长（秒）")
@click.option(
    "--autonomous/--no-autonomous",
    default=False,
    help="是否开启自动交易",
)
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="结束后导出交易记录 CSV",
)
def run(seconds: float, autonomous: bool, export_path: Path | None) -> None:
    """运行一个实时模拟会话。

    被动监控 → (可选) 自动执行 → 结束后输出汇总
    """
    setup_logging()
    logger = get_logger("arb_sim.main")
    settings = get_settings()

    logger.info("starting_session", seconds=seconds, autonomous=autonomous)

    try:
        snapshot = asyncio.run(_run_session(settings, seconds, autonomous))
    except KeyboardInterrupt:
        logger.info("session_interrupted", message="User interrupted")
        sys.exit(0)

    _echo_session_summary(settings, snapshot)
    if export_path is not None:
        write_trade_history(export_path, snapshot.trades)
        click.echo(f"Trade history written to {export_path}")


async def _run_session(settings: Settings, seconds: float, autonomous: bool) -> SessionSnapshot:
    controller = SessionController(settings)
    async with controller:
        if autonomous:
            controller.set_autonomous(True)
        await asyncio.sleep(seconds)
        return controller.snapshot()


@cli.command()
@click.option(
    "--scenario",
    type=click.Choice(sorted(SCENARIOS)),
    default="volatile",
    show_default=True,
    help="回测情景",
)
@click.option("--seed", type=int, default=None, help="随机源种子")
@click.option("--ticks", type=int, default=None, help="覆盖回测 tick 数")
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="导出回测交易记录 CSV",
)
def backtest(scenario: str, seed: int | None, ticks: int | None, export_path: Path | None) -> None:
    """在初始行情副本上回放一个情景。"""
    setup_logging()
    logger = get_logger("arb_sim.main")
    settings = get_settings()

    # 命令行参数覆盖配置
    overrides: dict[str, object] = {}
    if seed is not None:
        overrides["random_seed"] = seed
    if ticks is not None:
        overrides["backtest_ticks"] = ticks
    if overrides:
        settings = settings.model_copy(update=overrides)

    logger.info("starting_backtest", scenario=scenario, ticks=settings.backtest_ticks)

    result = run_scenario(
        scenario=get_scenario(scenario),
        market=build_initial_market_state(settings),
        equity=settings.initial_capital,
        settings=settings,
        rng=build_random_source(settings.random_seed),
    )
    _echo_backtest_summary(result)
    if export_path is not None:
        write_trade_history(export_path, result.trades)
        click.echo(f"Trade history written to {export_path}")


@cli.command()
def status() -> None:
    """显示系统状态和配置摘要。"""
    setup_logging()
    settings = get_settings()

    click.echo("=" * 50)
    click.echo("Arb Sim - Status")
    click.echo("=" * 50)
    click.echo()

    # 市场模拟
    click.echo("[Market]")
    click.echo(f"   Exchanges: {', '.join(settings.exchanges)}")
    click.echo(f"   Pairs: {', '.join(settings.pairs)}")
    click.echo(f"   Volatility per tick: {settings.volatility_pct}%")
    click.echo(f"   Seed: {settings.random_seed if settings.random_seed is not None else 'random'}")
    click.echo()

    # 执行参数
    click.echo("[Execution]")
    click.echo(f"   Initial capital: {settings.initial_capital:.2f} USDT")
    click.echo(f"   Allocation: {settings.allocation_fraction:.0%} of equity, max {settings.max_allocation:.2f}")
    click.echo(f"   Fee rate: {settings.fee_rate:.4%} per side")
    click.echo(f"   Min spread: {settings.min_spread_pct}%")
    click.echo(f"   Auto-execute score threshold: {settings.score_threshold}")
    click.echo()

    # 分析服务
    click.echo("[Enrichment]")
    provider = "OpenRouter" if settings.has_openrouter else "Offline heuristic"
    click.echo(f"   Provider: {provider}")
    click.echo(f"   LLM Model: {settings.openrouter_model}")
    click.echo()

    # 日志配置
    click.echo("[Logging]")
    click.echo(f"   Log level: {settings.log_level}")
    click.echo(f"   Log format: {settings.log_format.value}")
    click.echo()
    click.echo("=" * 50)


def _echo_session_summary(settings: Settings, snapshot: SessionSnapshot) -> None:
    click.echo("=" * 50)
    click.echo(f"Mode: {snapshot.mode.value}")
    click.echo(f"Equity: {snapshot.equity:.2f} USDT (start {settings.initial_capital:.2f})")
    click.echo(f"Trades: {len(snapshot.trades)}")
    click.echo(f"Lessons: {len(snapshot.lessons)}")
    for key, value in snapshot.metrics.items():
        click.echo(f"   {key}: {value}")
    for opportunity in snapshot.opportunities[:5]:
        click.echo(
            f"   {opportunity.pair}: buy {opportunity.buy_exchange} "
            f"sell {opportunity.sell_exchange} "
            f"spread {opportunity.spread_pct:.3f}% score {opportunity.composite_score:.1f}"
        )
    click.echo("=" * 50)


def _echo_backtest_summary(result: BacktestResult) -> None:
    click.echo("=" * 50)
    click.echo(f"Scenario: {result.scenario}")
    click.echo(f"Ticks: {result.ticks_run}/{result.ticks_planned}")
    click.echo(f"Equity: {result.start_equity:.2f} -> {result.end_equity:.2f}")
    click.echo(f"Net yield: {result.net_yield:+.4f} USDT")
    for key, value in result.metrics.items():
        click.echo(f"   {key}: {value}")
    click.echo("=" * 50)


# 支持 python -m arb_sim.main 调用
if __name__ == "__main__":
    cli()
