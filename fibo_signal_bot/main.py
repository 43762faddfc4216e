from __future__ import annotations

import argparse
import asyncio
import logging

from .config import default_config, load_config
from .runner import SignalRunner


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Fibo Signal Bot - ADX/slope/GOG + Fibonacci crypto signals")
    p.add_argument("--config", help="Path to YAML config (defaults are used when omitted)")
    p.add_argument("--once", action="store_true", help="Refresh every symbol once, print summaries and exit")
    args = p.parse_args(argv)

    cfg = load_config(args.config) if args.config else default_config()
    _setup_logging(cfg.app.log_level)

    runner = SignalRunner(cfg)

    async def _run() -> None:
        try:
            if args.once:
                await runner.run_once()
                if runner.assets:
                    print(runner.tickers_banner())
                for text in runner.summaries():
                    print(text)
                    print()
            else:
                await runner.run_forever()
        finally:
            # Close shared REST sessions cleanly.
            await runner.close()

    try:
        asyncio.run(_run())
        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logging.getLogger("main").exception("fatal err=%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
