"""Allow running PomoGuard as a module: python -m pomoguard."""

import argparse
import logging
import signal
import sys

from PyQt6.QtCore import QCoreApplication

from .database.db import init_db
from .storage import TimerStore
from .timer.display import display_time, session_label
from .timer.engine import TimerEngine


logger = logging.getLogger("pomoguard")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pomoguard",
        description="Run the PomoGuard timer headless.",
    )
    parser.add_argument("--task", default=None,
                        help="start a work session with this task label")
    parser.add_argument("--rest", action="store_true",
                        help="start a break instead of a work session")
    parser.add_argument("--quiet", action="store_true",
                        help="only print completion notifications")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_db()
    store = TimerStore()
    store.cleanup_old_data()

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName("PomoGuard")
    app.setOrganizationName("PomoGuard")

    engine = TimerEngine(store=store)
    if not args.quiet:
        engine.status_changed.connect(
            lambda s: print(f"{session_label(s)}  {s.state.value:<7} {display_time(s)}")
        )
    engine.timer_completed.connect(lambda n: print(f"*** {n.title} {n.message}"))
    engine.initialize()

    if args.rest:
        engine.start_rest()
    elif args.task is not None:
        engine.start_work(args.task)

    # Ctrl-C quits; the last snapshot is already on disk.
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    app.aboutToQuit.connect(engine.destroy)

    logger.info("PomoGuard ready")
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
