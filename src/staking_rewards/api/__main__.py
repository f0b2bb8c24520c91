# src/staking_rewards/api/__main__.py
from __future__ import annotations

import uvicorn

from staking_rewards.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so STAKING_REWARDS_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (config must not be read before env is populated)
    from staking_rewards.api.app import create_app
    from staking_rewards.runtime.engine_config import load_engine_config
    from staking_rewards.runtime.event_log import configure_structured_logging

    configure_structured_logging()
    cfg = load_engine_config()

    uvicorn.run(create_app(), host=cfg.api_host, port=int(cfg.api_port), log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
