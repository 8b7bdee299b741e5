import structlog

from sci.config import CheckConfig, settings
from sci.models import CheckRun
from sci.utils.github import GitHubAPIClient

logger = structlog.get_logger(__name__)

MISSING_OUTPUT = "<missing>"


class ResultPublisher:
    def __init__(self, config: CheckConfig, github: GitHubAPIClient):
        self.config = config
        self.github = github

    def description(self) -> str:
        return "Ran:\n" + "\n".join("  " + " ".join(c) for c in self.config.checks)

    def gist_files(self, run: CheckRun) -> dict[str, str]:
        return {name: text or MISSING_OUTPUT for name, text in run.outputs.items()}

    async def publish(self, run: CheckRun) -> str:
        """
        Upload the run's output as a secret gist and set the commit status.

        Returns the gist URL. When the gist cannot be created the error is
        raised and no status is posted.
        """
        commit_url = f"https://{settings.github_host}/{run.repo}/commit/{run.commit}"
        # Secret gists are still reachable through their URL without
        # authentication.
        gist_url = await self.github.create_gist(
            description=f"Output for {commit_url}",
            files=self.gist_files(run),
            public=False,
        )

        owner, name = run.repo.split("/", 1)
        await self.github.create_commit_status(
            owner=owner,
            repo=name,
            sha=run.commit,
            state=run.status.value,
            target_url=gist_url,
            description=self.description(),
            context=self.config.name,
        )
        logger.info(
            "Published check results",
            repo=run.repo,
            commit=run.commit,
            state=run.status.value,
            gist_url=gist_url,
        )
        return gist_url
