# ec2_runner/main.py
import argparse
import logging
import logging.config
import os
import sys

import yaml

from ec2_runner.config_loader import ActionConfig, load_action_config
from ec2_runner.errors import RunnerError
from ec2_runner.github_client import GitHubClient
from ec2_runner.instance_manager import launch_instance, terminate_instance, wait_until_running
from ec2_runner.secret_store import get_secret_value
from ec2_runner.user_data import build_user_data
from ec2_runner.utils import (
    annotate_error,
    generate_unique_label,
    in_github_actions,
    make_session,
    set_output,
)

log = logging.getLogger("ec2_runner.main")


def load_logging_config(path=None):
    path = path or os.getenv("LOGGING_CONFIG") or "config/logging.yaml"
    try:
        with open(path) as f:
            cfg = yaml.safe_load(f)
        logging.config.dictConfig(cfg)
    except (OSError, ValueError, TypeError, AttributeError, yaml.YAMLError):
        logging.basicConfig(
            level=logging.INFO,
            format='{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","msg":"%(message)s"}',
        )


def start(config: ActionConfig, ec2, secretsmanager, github=None, registration_wait=True) -> tuple[str, str]:
    """Launch a runner instance. Returns (label, instance_id)."""
    label = generate_unique_label()
    pat = get_secret_value(secretsmanager, config.github_token)
    github = github or GitHubClient(pat, config.repository, api_url=config.api_url)

    registration_token = github.get_registration_token()
    user_data = build_user_data(registration_token, label, config.launch)
    instance_id = launch_instance(ec2, config.launch, user_data)

    # published before waiting so a failed start can still be stopped
    set_output("label", label)
    set_output("ec2-instance-id", instance_id)

    wait_until_running(ec2, instance_id)
    if registration_wait:
        github.wait_for_runner_registered(label)
    return label, instance_id


def stop(config: ActionConfig, ec2, secretsmanager, github=None):
    pat = get_secret_value(secretsmanager, config.github_token)
    github = github or GitHubClient(pat, config.repository, api_url=config.api_url)

    terminate_instance(ec2, config.ec2_instance_id)
    github.remove_runner(config.label)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Start or stop an on-demand EC2 instance registered as a GitHub Actions self-hosted runner."
    )
    parser.add_argument("mode", nargs="?", help="start a new runner or stop a previous one (or INPUT_MODE)")
    parser.add_argument("--github-token", help="Secrets Manager ARN or friendly name holding the GitHub PAT")
    parser.add_argument("--ec2-image-id", help="AMI to launch (start)")
    parser.add_argument("--ec2-instance-type", help="Instance type (start)")
    parser.add_argument("--subnet-id", help="Subnet to launch in; cannot be used with --vpc-id")
    parser.add_argument("--vpc-id", help="VPC whose subnets are tried in turn; cannot be used with --subnet-id")
    parser.add_argument("--security-group-id", help="Security group for the instance (start)")
    parser.add_argument("--label", help="Runner label to deregister (stop)")
    parser.add_argument("--ec2-instance-id", help="Instance to terminate (stop)")
    parser.add_argument("--iam-role-name", help="Instance profile to attach")
    parser.add_argument("--aws-resource-tags", help='JSON array, e.g. [{"Key": "k", "Value": "v"}]')
    parser.add_argument("--runner-home-dir", help="Directory with a pre-installed actions-runner")
    parser.add_argument("--ec2-launch-template", help="Launch template name")
    parser.add_argument("--pre-runner-script", help="Shell commands run before the runner registers")
    parser.add_argument("--runner-version", help="actions-runner release to download")
    parser.add_argument("--aws-region", help="AWS region; defaults to the environment's")
    parser.add_argument("--aws-profile", help="Optional AWS CLI profile")
    parser.add_argument("--config", help="YAML file with inputs (default config/runtime.yaml if present)")
    parser.add_argument("--logging-config", help="logging dictConfig YAML (default config/logging.yaml)")
    parser.add_argument(
        "--no-wait-registration",
        action="store_true",
        help="Return once the instance is running without waiting for the runner to come online",
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    load_logging_config(args.logging_config)

    cli = {k: v for k, v in vars(args).items() if k not in ("config", "logging_config", "no_wait_registration")}
    try:
        config = load_action_config(cli, config_path=args.config)
        session = make_session(config.aws_region, config.aws_profile)
        ec2 = session.client("ec2")
        secretsmanager = session.client("secretsmanager")

        if config.mode == "start":
            label, instance_id = start(
                config, ec2, secretsmanager, registration_wait=not args.no_wait_registration
            )
            log.info("Runner %s started on instance %s", label, instance_id)
        else:
            stop(config, ec2, secretsmanager)
            log.info("Runner %s stopped, instance %s terminated", config.label, config.ec2_instance_id)
    except RunnerError as e:
        log.error("%s", e)
        if in_github_actions():
            annotate_error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
