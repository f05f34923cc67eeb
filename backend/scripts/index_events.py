import argparse

from loguru import logger

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db import init_db
from app.models import EVENT_MODELS_BY_NAME
from app.services.contract_client import ContractClient
from indexer.service import index_range, resume_block, session_scope


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index Policast market contract events")
    parser.add_argument("--from-block", type=int, default=None, help="First block to index")
    parser.add_argument(
        "--to-block",
        type=int,
        default=None,
        help="Last block to index (defaults to the chain head)",
    )
    parser.add_argument("--chunk-size", type=int, default=None, help="Blocks per eth_getLogs request")
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Start after the last block recorded in the indexer cursor.",
    )
    parser.add_argument(
        "--event",
        action="append",
        default=None,
        metavar="NAME",
        help="Only index this event type (repeatable, e.g. --event TradeExecuted)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    configure_logging(settings.log_level)
    init_db()

    event_names = None
    if args.event:
        event_names = []
        for name in args.event:
            if name not in EVENT_MODELS_BY_NAME:
                logger.warning(
                    "Ignoring unknown event '{}'. Known events: {}",
                    name,
                    ", ".join(sorted(EVENT_MODELS_BY_NAME)),
                )
                continue
            event_names.append(name)
        if not event_names:
            logger.error("No valid --event filters given; nothing to index")
            return

    client = ContractClient.from_settings(settings)
    to_block = args.to_block if args.to_block is not None else client.latest_block()
    chunk_size = args.chunk_size or settings.indexer_chunk_size

    with session_scope() as session:
        from_block = args.from_block if args.from_block is not None else settings.indexer_start_block
        if args.resume:
            from_block = resume_block(session, client.address, from_block)
        logger.info("Indexing {} from block {} to {}", client.address, from_block, to_block)
        result = index_range(
            client,
            session,
            from_block=from_block,
            to_block=to_block,
            chunk_size=chunk_size,
            event_names=event_names,
        )

    for name, count in sorted(result.per_event.items()):
        logger.info("{}: {} rows", name, count)
    logger.info("Indexed {} rows in {} chunks", result.total, result.chunks)


if __name__ == "__main__":
    main()
