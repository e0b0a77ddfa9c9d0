from __future__ import annotations

import pytest

from shiftropolis.data import GameDataContext, default_context
from shiftropolis.data.env_vars import EnvironmentVariable, EnvVarID, EnvVarsDatabase
from shiftropolis.errors import ConfigurationError, NotFoundError


class TestEnvVarsDatabase:
    def test_defaults(self) -> None:
        db = EnvVarsDatabase()
        gravity = db.lookup(EnvVarID.GRAVITY)
        speed = db.lookup("GAME_SPEED")
        assert (gravity.default, gravity.range) == (1.0, (0.2, 3.0))
        assert (speed.default, speed.range) == (1.0, (0.5, 2.0))

    def test_clamp(self) -> None:
        gravity = EnvVarsDatabase().lookup(EnvVarID.GRAVITY)
        assert gravity.clamp(5.0) == 3.0
        assert gravity.clamp(0.0) == 0.2
        assert gravity.clamp(1.3) == 1.3

    def test_unknown_variable(self) -> None:
        with pytest.raises(NotFoundError):
            EnvVarsDatabase().lookup("WIND")

    def test_inverted_range_rejected(self) -> None:
        variables = [
            EnvironmentVariable(EnvVarID.GRAVITY, "Gravity", "", 1.0, (3.0, 0.2)),
            EnvironmentVariable(EnvVarID.GAME_SPEED, "Speed", "", 1.0, (0.5, 2.0)),
        ]
        with pytest.raises(ConfigurationError, match="inverted"):
            EnvVarsDatabase(variables)

    def test_default_outside_range_rejected(self) -> None:
        variables = [
            EnvironmentVariable(EnvVarID.GRAVITY, "Gravity", "", 9.0, (0.2, 3.0)),
            EnvironmentVariable(EnvVarID.GAME_SPEED, "Speed", "", 1.0, (0.5, 2.0)),
        ]
        with pytest.raises(ConfigurationError, match="outside"):
            EnvVarsDatabase(variables)

    def test_missing_variable_rejected(self) -> None:
        variables = [
            EnvironmentVariable(EnvVarID.GRAVITY, "Gravity", "", 1.0, (0.2, 3.0)),
        ]
        with pytest.raises(ConfigurationError, match="GAME_SPEED"):
            EnvVarsDatabase(variables)


class TestDefaultContext:
    def test_context_is_built_once(self) -> None:
        assert default_context() is default_context()

    def test_context_bundles_default_registries(self) -> None:
        context = default_context()
        assert isinstance(context, GameDataContext)
        assert len(context.rules) == 9
        assert len(context.modules) == 21
