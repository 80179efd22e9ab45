import sqlite3
import sys

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from llm_trace_replay.api import create_app
from llm_trace_replay.app_config import load_json_config, parse_app_config
from llm_trace_replay.bootstrap import bootstrap_runtime
from llm_trace_replay.errors import PersistenceError
from llm_trace_replay.logging_config import setup_logging


def main() -> None:
    load_dotenv()

    config = parse_app_config(load_json_config())
    log_descriptions = setup_logging(level=config.log_level, consumers=config.log_consumers)

    try:
        runtime = bootstrap_runtime(config)
    except (OSError, sqlite3.Error, PersistenceError) as ex:
        logger.error(f"Cannot open trace store at {config.database_path}: {ex}")
        sys.exit(1)

    providers = [
        f"{entry.key}{'' if entry.api_key else ' (no key)'}" for entry in config.providers.values()
    ]
    logger.info(f"Store: {runtime.store.db_path}")
    logger.info(f"Providers: {', '.join(providers) or 'none configured'}")
    logger.info(f"Replay timeout: {config.replay_timeout_seconds:g}s")
    if log_descriptions:
        logger.info(f"Logging: {', '.join(log_descriptions)}")

    try:
        uvicorn.run(create_app(runtime), host=config.server.host, port=config.server.port)
    finally:
        runtime.close()


if __name__ == "__main__":
    main()
