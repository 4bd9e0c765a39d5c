#!/usr/bin/env python
"""
Timer chain demo.

Schedules a callback that schedules another callback that fails, then prints
the continuation trace in every text shape.

Run:
    python examples/timer_chain.py
"""

import threading

import longstack

errors: list[BaseException] = []


def fail():
    raise ValueError("Oh noes!")


def second_hop():
    timer = threading.Timer(0.01, longstack.wrap(fail_and_record))
    timer.start()
    timer.join()


def fail_and_record():
    try:
        fail()
    except ValueError as exc:
        longstack.attach(exc)
        errors.append(exc)


def first_hop():
    timer = threading.Timer(0.01, longstack.wrap(second_hop))
    timer.start()
    timer.join()


if __name__ == "__main__":
    first_hop()
    for shape in ("normal", "tree"):
        print(f"== {shape} ==")
        print(longstack.format_exception(errors[0], shape))
        print()
