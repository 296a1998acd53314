from coreason_judger.config import JudgerConfig
from coreason_judger.runtime import SandboxRunner
from coreason_judger.runtimes.local import LocalRuntime


class RunnerFactory:
    """
    Factory to create SandboxRunner instances based on configuration.
    """

    @staticmethod
    def get_runner(config: JudgerConfig) -> SandboxRunner:
        """
        Returns an instance of the configured SandboxRunner.
        """
        if config.runtime == "local":
            return LocalRuntime()
        else:
            # This should be unreachable due to Pydantic validation, but for safety:
            raise ValueError(f"Unknown runtime: {config.runtime}")  # pragma: no cover
