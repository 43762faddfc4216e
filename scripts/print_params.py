from __future__ import annotations

import argparse
import pprint

from fibo_signal_bot.config import load_config
from fibo_signal_bot.models import IndicatorParams, TargetParams
from fibo_signal_bot.runner import _stable_strategy_signature


def main():
    p = argparse.ArgumentParser(description="Print the strategy parameter signature for a config")
    p.add_argument("--config", required=True, help="Path to YAML config")
    args = p.parse_args()

    cfg = load_config(args.config)

    print("STRATEGY INPUTS:")
    pprint.pprint(cfg.strategy.signature())
    print("\nDEFAULTS REFERENCE:")
    pprint.pprint({**IndicatorParams().__dict__, **TargetParams().__dict__})
    print("\nSIGNATURE:", _stable_strategy_signature(cfg))


if __name__ == "__main__":
    main()
