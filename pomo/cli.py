from __future__ import annotations

import argparse
from dataclasses import replace
import logging
from pathlib import Path
import sys
from typing import TextIO

from .config import PomoConfig
from .notifier import DesktopNotifier
from .service import CommandError, PomoService
from .stats import format_duration
from .timer import TimerState, format_countdown

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def minutes_to_seconds(minutes: float) -> int:
    if minutes <= 0:
        return 0
    seconds = int(round(minutes * 60))
    return max(1, seconds)


class ConsoleProgress:
    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def timer_progress(self, state: TimerState) -> None:
        name = state.label or "计时"
        self.stream.write(f"\r{name} 剩余 {format_countdown(state.remaining)}")
        self.stream.flush()

    def timer_completed(self) -> None:
        self.stream.write("\r" + (" " * 60) + "\r")
        self.stream.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pomo",
        description="Pomo：单计时器倒计时引擎、会话记录与统计",
    )
    parser.add_argument("--data-dir", default=None, help="会话历史目录（默认 POMO_DATA_DIR 或 pomo/data）")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别（默认 POMO_LOG_LEVEL 或 WARNING）",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="在前台运行一次倒计时")
    run_parser.add_argument("--minutes", type=float, default=None, help="时长（分钟）")
    run_parser.add_argument("--seconds", type=int, default=None, help="时长（秒），优先于 --minutes")
    run_parser.add_argument("--label", default="", help="会话名称")
    run_parser.add_argument("--kind", default="focus", help="会话类型")
    run_parser.add_argument("--notify", action="store_true", help="完成时发送桌面通知")

    stats_parser = subparsers.add_parser("stats", help="查看统计")
    stats_parser.add_argument("--days", type=int, default=None, help="只统计最近 N 天")

    recent_parser = subparsers.add_parser("recent", help="查看最近会话")
    recent_parser.add_argument("--limit", type=int, default=10, help="最多显示条数")

    subparsers.add_parser("today", help="今日完成次数")

    serve_parser = subparsers.add_parser("serve", help="启动本地 HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8765)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = PomoConfig.from_env()
    if args.data_dir:
        config = replace(config, data_dir=Path(args.data_dir).expanduser())
    logging.basicConfig(level=args.log_level or config.log_level, format=LOG_FORMAT)

    if args.command == "serve":
        return _handle_serve(args, config)

    service = PomoService.build(config)
    try:
        if args.command == "run":
            return _handle_run(args, service, parser)
        if args.command == "stats":
            return _handle_stats(args, service)
        if args.command == "recent":
            return _handle_recent(args, service)
        if args.command == "today":
            print(f"今日完成：{service.today_count()} 次")
            return 0
    except CommandError as exc:
        print(f"错误：{exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 2


def _handle_run(args: argparse.Namespace, service: PomoService, parser: argparse.ArgumentParser) -> int:
    if args.seconds is not None and args.seconds < 0:
        parser.error("--seconds 不能为负数")
    if args.minutes is not None and args.minutes < 0:
        parser.error("--minutes 不能为负数")

    if args.seconds is not None:
        duration = args.seconds
    elif args.minutes is not None:
        duration = minutes_to_seconds(args.minutes)
    else:
        duration = service.state().planned_duration

    service.set_label(args.label)
    service.configure(duration)
    service.engine.add_sink(ConsoleProgress())
    if args.notify:
        service.engine.add_sink(DesktopNotifier())
    service.begin_session(args.kind)

    print(f"开始倒计时：{format_countdown(duration)}")
    service.start()
    try:
        while not service.engine.join(timeout=0.5):
            pass
    except KeyboardInterrupt:
        service.stop()
        print("\n计时已中断，已保存当前记录。")
        return 130

    print(f"计时完成，今日完成 {service.today_count()} 次。")
    return 0


def _handle_stats(args: argparse.Namespace, service: PomoService) -> int:
    stats = service.stats(args.days)
    title = f"最近 {args.days} 天" if args.days is not None else "全部"
    print(f"[{title}]")
    print(f"会话总数: {stats.total_sessions} 次")
    print(f"完成会话: {stats.completed_sessions} 次")
    print(f"完成率: {stats.completion_rate:.0%}")
    print(f"平均时长: {format_duration(int(round(stats.average_duration)))}")
    print(f"专注总时长: {format_duration(stats.total_focus_time)}")
    print(f"当前连续完成: {stats.current_streak} 次")
    print(f"最长连续完成: {stats.longest_streak} 次")
    print(f"命名会话完成率: {stats.named_completion_rate:.0%}")
    print(f"未命名会话完成率: {stats.unnamed_completion_rate:.0%}")
    return 0


def _handle_recent(args: argparse.Namespace, service: PomoService) -> int:
    sessions = service.recent(args.limit)
    if not sessions:
        print("没有会话记录。")
        return 0

    for item in sessions:
        start_text = item.start_time.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        if item.end_time is None:
            state_text = "进行中"
        else:
            state_text = "完成" if item.completed else "中断"
        print(
            f"{start_text} | {item.kind} | {state_text} | {format_duration(item.actual_duration)} | "
            f"暂停 {item.pause_count} 次 | 名称: {item.label or '-'}"
        )
    return 0


def _handle_serve(args: argparse.Namespace, config: PomoConfig) -> int:
    try:
        import uvicorn
    except ImportError as exc:
        print(f"启动失败：缺少依赖 uvicorn。{exc}", file=sys.stderr)
        return 2

    from .api.factory import create_app

    uvicorn.run(
        create_app(config),
        host=args.host,
        port=args.port,
        log_level=config.log_level.lower(),
    )
    return 0
