"""
Hypothesis configuration for property-based testing.

This module registers the Hypothesis profiles used by the property tests
of splurge-assert-migrate and exposes shared settings objects.
"""

import hypothesis
from hypothesis import Phase, settings

hypothesis.settings.register_profile(
    "default",
    settings(
        database=None,
        print_blob=True,
        max_examples=100,
        deadline=None,
        phases=[
            Phase.explicit,
            Phase.reuse,
            Phase.generate,
            Phase.target,
            Phase.shrink,
        ],
        derandomize=True,
    ),
)

hypothesis.settings.register_profile(
    "ci",
    settings(
        max_examples=200,
        deadline=None,
        print_blob=True,
        derandomize=True,
    ),
)

hypothesis.settings.register_profile(
    "fast",
    settings(
        max_examples=25,
        deadline=None,
        print_blob=True,
        derandomize=True,
        phases=[
            Phase.explicit,
            Phase.reuse,
            Phase.generate,
            Phase.shrink,
        ],
    ),
)

hypothesis.settings.load_profile("default")

DEFAULT_SETTINGS = settings(
    max_examples=100,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Parsing a whole package per example is slow; keep those runs short.
PACKAGE_SETTINGS = settings(
    max_examples=20,
    deadline=None,
    print_blob=True,
    derandomize=True,
)
