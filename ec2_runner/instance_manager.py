# ec2_runner/instance_manager.py
import logging
from dataclasses import dataclass, field

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ec2_runner.errors import (
    AllSubnetsExhaustedError,
    LaunchError,
    NoSubnetsError,
    ReadinessCheckError,
    ReadinessTimeoutError,
    TerminationError,
)
from ec2_runner.user_data import encode_user_data

log = logging.getLogger("ec2_runner.instance_manager")

AWS_ERRORS = (ClientError, BotoCoreError)


@dataclass(frozen=True)
class LaunchConfig:
    image_id: str
    instance_type: str
    security_group_id: str
    subnet_id: str | None = None
    vpc_id: str | None = None
    iam_role_name: str | None = None
    launch_template: str | None = None
    tags: tuple = ()
    runner_home_dir: str | None = None
    pre_runner_script: str | None = None
    runner_version: str | None = None
    github_repo_url: str = ""


def tag_specifications(tags):
    """Apply the same tags to the instance and its volumes."""
    if not tags:
        return []
    tag_list = [{"Key": t["Key"], "Value": t["Value"]} for t in tags]
    return [
        {"ResourceType": "instance", "Tags": tag_list},
        {"ResourceType": "volume", "Tags": list(tag_list)},
    ]


def build_launch_params(config: LaunchConfig, user_data) -> dict:
    params = {
        "ImageId": config.image_id,
        "InstanceType": config.instance_type,
        "MinCount": 1,
        "MaxCount": 1,
        "UserData": encode_user_data(user_data),
        "SecurityGroupIds": [config.security_group_id],
    }
    if config.subnet_id:
        params["SubnetId"] = config.subnet_id
    if config.iam_role_name:
        params["IamInstanceProfile"] = {"Name": config.iam_role_name}
    specs = tag_specifications(config.tags)
    if specs:
        params["TagSpecifications"] = specs
    if config.launch_template:
        params["LaunchTemplate"] = {"LaunchTemplateName": config.launch_template}
    return params


def _run_instance(ec2, params) -> str:
    resp = ec2.run_instances(**params)
    instance_id = resp["Instances"][0]["InstanceId"]
    log.info("AWS EC2 instance %s is started", instance_id)
    return instance_id


def list_subnets(ec2, vpc_id: str) -> list[str]:
    """Subnet ids of a VPC, in the order EC2 returns them."""
    try:
        resp = ec2.describe_subnets(Filters=[{"Name": "vpc-id", "Values": [vpc_id]}])
    except AWS_ERRORS as e:
        raise LaunchError(f"Failed to list subnets of {vpc_id}: {e}") from e
    return [s["SubnetId"] for s in resp.get("Subnets", [])]


def launch_instance(ec2, config: LaunchConfig, user_data) -> str:
    """
    Launch exactly one instance and return its id.

    With a pinned subnet (or no VPC) a single attempt is made. With a VPC the
    subnets are tried one at a time in listing order; the first success wins
    and no further attempts are made.
    """
    params = build_launch_params(config, user_data)

    if config.subnet_id or not config.vpc_id:
        try:
            return _run_instance(ec2, params)
        except AWS_ERRORS as e:
            log.error("AWS EC2 instance starting error")
            raise LaunchError(f"Failed to launch instance: {e}") from e

    subnets = list_subnets(ec2, config.vpc_id)
    if not subnets:
        raise NoSubnetsError(f"Did not find any subnets in the provided VPC {config.vpc_id}")

    attempts = []
    for subnet_id in subnets:
        params["SubnetId"] = subnet_id
        try:
            return _run_instance(ec2, params)
        except AWS_ERRORS as e:
            log.error("AWS EC2 instance starting error in subnet %s: %s", subnet_id, e)
            log.error("Retrying with next subnet...")
            attempts.append((subnet_id, e))

    raise AllSubnetsExhaustedError(config.vpc_id, attempts)


def wait_until_running(ec2, instance_id: str, waiter_config: dict | None = None):
    """Block on the EC2 instance_running waiter (its own delay and max attempts)."""
    waiter = ec2.get_waiter("instance_running")
    kwargs = {"InstanceIds": [instance_id]}
    if waiter_config:
        kwargs["WaiterConfig"] = waiter_config
    try:
        waiter.wait(**kwargs)
    except WaiterError as e:
        log.error("AWS EC2 instance %s initialization error", instance_id)
        if "Max attempts exceeded" in str(e.kwargs.get("reason", "")):
            raise ReadinessTimeoutError(
                f"AWS EC2 instance {instance_id} did not reach running state in time: {e}"
            ) from e
        raise ReadinessCheckError(f"AWS EC2 instance {instance_id} initialization error: {e}") from e
    except AWS_ERRORS as e:
        log.error("AWS EC2 instance %s initialization error", instance_id)
        raise ReadinessCheckError(f"AWS EC2 instance {instance_id} initialization error: {e}") from e
    log.info("AWS EC2 instance %s is up and running", instance_id)


def terminate_instance(ec2, instance_id: str):
    try:
        ec2.terminate_instances(InstanceIds=[instance_id])
    except AWS_ERRORS as e:
        log.error("AWS EC2 instance %s termination error", instance_id)
        raise TerminationError(f"AWS EC2 instance {instance_id} termination error: {e}") from e
    log.info("AWS EC2 instance %s is terminated", instance_id)
