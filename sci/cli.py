import argparse
import asyncio
import os
import sys

import structlog
import uvicorn

from sci.config import CheckConfig, load_config, settings
from sci.context import SciContext
from sci.logger import setup_logging
from sci.main import create_app
from sci.models import RunTrigger

logger = structlog.get_logger(__name__)

LOCAL_COMMIT = "HEAD"


async def simulate(sci: SciContext, repo: str, commit: str) -> bool:
    """
    Run the checks for repo locally, bypassing webhooks and authorization.

    With the HEAD commit the outputs are only printed. With a concrete
    commit the results are published exactly like a webhook triggered run.
    """
    logger.info("Local run", repo=repo, commit=commit, trigger=RunTrigger.MANUAL.value)
    run = await sci.runner.run(repo, commit)
    if commit != LOCAL_COMMIT:
        await sci.publisher.publish(run)
        return run.success

    for name in sorted(run.outputs):
        print(f"--- {name}\n{run.outputs[name]}")
    print(f"\nSuccess: {run.success}")
    return run.success


def serve(sci: SciContext, config: CheckConfig) -> None:
    logger.info("Running in", work_dir=os.getcwd(), executable=sys.argv[0])
    logger.info("Listening", port=config.port)
    uvicorn.run(create_app(sci), host="0.0.0.0", port=config.port, log_config=None)


def main_impl(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sci", description="Runs checks on GitHub pushes and pull requests"
    )
    parser.add_argument(
        "--test",
        metavar="OWNER/REPO",
        help="runs a simulation locally, specify the git repository name (not URL) to test, e.g. 'octocat/hello-world'",
    )
    parser.add_argument(
        "--commit",
        default=LOCAL_COMMIT,
        help=f"commit ID to test and update; will only update if not '{LOCAL_COMMIT}'",
    )
    args = parser.parse_args(argv)

    config = load_config(settings.config_path)
    sci = SciContext.from_config(config)
    if args.test:
        asyncio.run(simulate(sci, args.test, args.commit))
        return 0

    serve(sci, config)
    return 0


def main(argv: list[str] | None = None) -> None:
    setup_logging(settings.debug)
    try:
        sys.exit(main_impl(argv))
    except Exception as e:
        print(f"sci: {e}.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
