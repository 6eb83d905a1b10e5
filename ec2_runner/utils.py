# ec2_runner/utils.py
import logging
import os
import random
import string

import boto3

log = logging.getLogger("ec2_runner.utils")

LABEL_ALPHABET = string.ascii_lowercase + string.digits


def generate_unique_label(length: int = 5) -> str:
    return "".join(random.choices(LABEL_ALPHABET, k=length))


def make_session(region: str | None = None, profile: str | None = None):
    if profile:
        return boto3.Session(profile_name=profile, region_name=region)
    return boto3.Session(region_name=region)


def set_output(name: str, value: str, output_path: str | None = None):
    """
    Publish a step output. Inside GitHub Actions this appends to $GITHUB_OUTPUT;
    elsewhere the value is only logged.
    """
    output_path = output_path or os.getenv("GITHUB_OUTPUT")
    if output_path:
        with open(output_path, "a") as f:
            f.write(f"{name}={value}\n")
    log.info("Output %s=%s", name, value)


def in_github_actions() -> bool:
    return os.getenv("GITHUB_ACTIONS") == "true"


def annotate_error(message: str):
    # workflow command; newlines must be escaped to stay on one annotation
    escaped = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
    print(f"::error::{escaped}", flush=True)
