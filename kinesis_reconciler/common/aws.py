# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Common functions to set up the AWS sessions.
"""

from __future__ import annotations

import boto3
from botocore.exceptions import ClientError
from compose_x_common.aws import get_assume_role_session, validate_iam_role_arn

from kinesis_reconciler.common.logging import LOG


def get_cross_role_session(session, arn, region_name=None, session_name=None):
    """
    Function to override the session with an assumed IAM role session

    :param boto3.session.Session session: The original session fetching the credentials for X-Role
    :param str arn:
    :param str region_name: Name of region for session
    :param str session_name: Override name of the session
    :return: boto3 session for the IAM role
    :rtype: boto3.session.Session
    """
    if not session_name:
        session_name = "KinesisReconciler"
    try:
        return get_assume_role_session(
            session, arn, session_name=session_name, region=region_name
        )
    except ClientError:
        LOG.error(f"Failed to use the Role ARN {arn}")
        raise


def define_session(
    session=None, profile_name=None, region_name=None, role_arn=None
) -> boto3.session.Session:
    """
    Function to define the session to make the Kinesis API calls with

    :param boto3.session.Session session: The session to override the API calls with
    :param str profile_name: Name of a profile configured in .aws/config
    :param str region_name: Region to use instead of the profile/environment one
    :param str role_arn: IAM role to assume from the session
    :rtype: boto3.session.Session
    """
    if session is None:
        session = boto3.session.Session(
            profile_name=profile_name, region_name=region_name
        )
    if role_arn:
        validate_iam_role_arn(arn=role_arn)
        session = get_cross_role_session(
            session, role_arn, region_name=region_name or session.region_name
        )
    return session
