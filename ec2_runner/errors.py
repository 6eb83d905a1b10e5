# ec2_runner/errors.py


class RunnerError(Exception):
    """Base exception for runner start/stop operations."""

    pass


class ConfigurationError(RunnerError):
    """Invalid or missing inputs."""

    pass


class SecretFetchError(RunnerError):
    pass


class LaunchError(RunnerError):
    """No launch attempt produced an instance."""

    pass


class NoSubnetsError(LaunchError):
    pass


class AllSubnetsExhaustedError(LaunchError):
    def __init__(self, vpc_id, attempts):
        self.vpc_id = vpc_id
        # (subnet_id, error) pairs in attempt order
        self.attempts = attempts
        detail = "; ".join(f"{subnet_id}: {error}" for subnet_id, error in attempts)
        super().__init__(
            f"Instance failed to launch in all {len(attempts)} subnets of {vpc_id} ({detail})"
        )


class ReadinessError(RunnerError):
    pass


class ReadinessTimeoutError(ReadinessError):
    pass


class ReadinessCheckError(ReadinessError):
    pass


class TerminationError(RunnerError):
    pass


class GitHubAPIError(RunnerError):
    pass


class RunnerRegistrationTimeoutError(RunnerError):
    pass
