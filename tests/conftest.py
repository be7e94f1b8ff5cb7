"""Hypothesis runner configuration for the test suite."""

from hypothesis import HealthCheck, settings

# The first text() draw builds Hypothesis's unicode tables, a one-time cost
# that otherwise trips the too_slow health check on a cold start.
settings.register_profile("default", suppress_health_check=[HealthCheck.too_slow])
settings.load_profile("default")
