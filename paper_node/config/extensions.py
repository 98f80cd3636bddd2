from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class ExtensionSettings:
    outcome_oracle: str
    oracle_win_probability: float

    @classmethod
    def from_env(cls) -> "ExtensionSettings":
        return cls(
            outcome_oracle=os.getenv(
                "OUTCOME_ORACLE",
                "paper_node.extensions.oracles:random_outcome_oracle",
            ),
            oracle_win_probability=float(os.getenv("ORACLE_WIN_PROBABILITY", "0.6")),
        )
