#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille<john@compose-x.io>

from threading import Event, Timer

from pytest import raises

from kinesis_reconciler.common.polling import pause, poll_until
from kinesis_reconciler.exceptions import PollingCancelled


def counter(values):
    results = list(values)
    calls = []

    def fetch():
        calls.append(1)
        return results.pop(0)

    return fetch, calls


def test_poll_until_returns_first_match():
    fetch, calls = counter([1, 2, 3, 4])
    assert poll_until(fetch, lambda value: value >= 3, 0) == 3
    assert len(calls) == 3


def test_poll_until_falsy_result():
    fetch, calls = counter([{}])
    assert poll_until(fetch, lambda value: True, 0) == {}
    assert len(calls) == 1


def test_poll_until_cancelled_before_fetch():
    fetch, calls = counter([1])
    cancel_token = Event()
    cancel_token.set()
    with raises(PollingCancelled):
        poll_until(fetch, lambda value: True, 0, cancel_token=cancel_token)
    assert calls == []


def test_pause_interrupted():
    cancel_token = Event()
    timer = Timer(0.05, cancel_token.set)
    timer.start()
    try:
        with raises(PollingCancelled):
            pause(30, cancel_token, "test")
    finally:
        timer.cancel()


def test_pause_not_cancelled():
    pause(0, Event())
    pause(0)
