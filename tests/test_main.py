from types import SimpleNamespace

import pytest

from showroom.main import _assert_psp_webhook_secrets


def test_missing_webhook_secret_fails_in_prod():
    with pytest.raises(RuntimeError):
        _assert_psp_webhook_secrets(SimpleNamespace(app_env="prod", STRIPE_WEBHOOK_SECRET=None))


@pytest.mark.parametrize("env", ["dev", "test", "local"])
def test_missing_webhook_secret_tolerated_in_relaxed_envs(env):
    _assert_psp_webhook_secrets(SimpleNamespace(app_env=env, STRIPE_WEBHOOK_SECRET=None))


def test_configured_secret_passes_everywhere():
    _assert_psp_webhook_secrets(SimpleNamespace(app_env="prod", STRIPE_WEBHOOK_SECRET="whsec_live"))
