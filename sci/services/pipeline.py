import structlog

from sci.models import CheckRun, RunRequest
from sci.services.authorization import AuthorizationCache
from sci.services.checks import CheckRunner
from sci.services.publisher import ResultPublisher

logger = structlog.get_logger(__name__)


class CheckPipeline:
    """Authorization, check run and publication for one request."""

    def __init__(
        self,
        runner: CheckRunner,
        publisher: ResultPublisher,
        authorization: AuthorizationCache | None = None,
    ):
        self.runner = runner
        self.publisher = publisher
        self.authorization = authorization

    async def process(self, request: RunRequest) -> CheckRun | None:
        log = logger.bind(repo=request.repo, commit=request.commit, actor=request.actor)

        if self.authorization is not None:
            if not request.actor or not await self.authorization.is_trusted(
                request.owner, request.name, request.actor
            ):
                log.info("Ignoring request from untrusted actor")
                return None

        log.info("Running checks", trigger=request.trigger.value)
        run = await self.runner.run(request.repo, request.commit)
        await self.publisher.publish(run)
        return run
