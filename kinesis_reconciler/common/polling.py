# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Fixed delay polling used to wait on the remote state to converge.

The cancellation token is a :class:`threading.Event`: once set, any ongoing or future wait
raises :class:`PollingCancelled` instead of sleeping.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from threading import Event

from time import sleep

from kinesis_reconciler.common.logging import LOG
from kinesis_reconciler.exceptions import PollingCancelled


def check_cancelled(cancel_token: Event = None, reason: str = None):
    """
    Raises PollingCancelled if the token has been set
    """
    if cancel_token is not None and cancel_token.is_set():
        raise PollingCancelled("Cancelled while waiting", reason)


def pause(interval: float, cancel_token: Event = None, reason: str = None):
    """
    Sleeps for interval seconds, or until the cancellation token is set.

    :param float interval: seconds to wait for
    :param threading.Event cancel_token: Event which, once set, interrupts the wait
    :param str reason: what we are waiting for, used in the exception
    :raises PollingCancelled: when the token is set before or during the wait
    """
    check_cancelled(cancel_token, reason)
    if cancel_token is None:
        sleep(interval)
    elif cancel_token.wait(interval):
        raise PollingCancelled("Cancelled while waiting", reason)


def poll_until(
    fetch: Callable,
    condition: Callable,
    interval: float,
    cancel_token: Event = None,
    initial_delay: bool = False,
    reason: str = None,
):
    """
    Calls fetch() every interval seconds until condition(result) is true and returns that result.
    There is no maximum number of attempts: use the cancellation token to give up.

    :param fetch: callable returning the latest remote state
    :param condition: callable evaluating whether the state has converged
    :param float interval: seconds between two fetches
    :param threading.Event cancel_token:
    :param bool initial_delay: wait for interval before the first fetch
    :param str reason: what we are waiting for, logged and used for exceptions
    :return: the first result of fetch() matching condition
    """
    if initial_delay:
        pause(interval, cancel_token, reason)
    attempts = 1
    while True:
        check_cancelled(cancel_token, reason)
        result = fetch()
        if condition(result):
            return result
        LOG.debug(f"{reason} - attempt {attempts} not converged. Waiting {interval}s")
        attempts += 1
        pause(interval, cancel_token, reason)
