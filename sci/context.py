from dataclasses import dataclass
from pathlib import Path

from fastapi import Request

from sci.config import CheckConfig, settings
from sci.services.authorization import AuthorizationCache, TrustCachePolicy
from sci.services.checks import CheckRunner
from sci.services.pipeline import CheckPipeline
from sci.services.publisher import ResultPublisher
from sci.services.run_queue import RunQueue
from sci.utils.github import GitHubAPIClient


@dataclass
class SciContext:
    """Everything a running sci process owns, wired from one config record."""

    config: CheckConfig
    github: GitHubAPIClient
    authorization: AuthorizationCache
    runner: CheckRunner
    publisher: ResultPublisher
    pipeline: CheckPipeline
    queue: RunQueue

    @classmethod
    def from_config(
        cls,
        config: CheckConfig,
        github: GitHubAPIClient | None = None,
        work_dir: str | Path | None = None,
        trust_policy: TrustCachePolicy | None = None,
    ) -> "SciContext":
        github = github or GitHubAPIClient(
            config.oauth2_access_token, base_url=settings.github_api_url
        )
        authorization = AuthorizationCache(github, policy=trust_policy)
        runner = CheckRunner(config, work_dir=work_dir)
        publisher = ResultPublisher(config, github)
        pipeline = CheckPipeline(runner, publisher, authorization=authorization)
        queue = RunQueue(
            pipeline.process,
            policy=config.concurrency,
            max_backlog=config.max_backlog,
            supersede_pending=config.supersede_pending,
        )
        return cls(
            config=config,
            github=github,
            authorization=authorization,
            runner=runner,
            publisher=publisher,
            pipeline=pipeline,
            queue=queue,
        )


def get_context(request: Request) -> SciContext:
    return request.app.state.sci
