#!/usr/bin/env python
"""
Rescore all active companies.

Usage:
    python scripts/rescore.py                      # built-in scoring
    python scripts/rescore.py --model model.json   # custom scoring model

Use after a roles sync or after changing a custom model; stored scores and
explanations are replaced.
"""
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from leadscout.core.container import ApplicationContainer
from leadscout.core.exceptions import ScoringModelError
from leadscout.core.logging import setup_logging
from leadscout.scoring.rules import load_model
from leadscout.settings import settings


def main() -> int:
    setup_logging(level=settings.log_level, log_file=settings.log_file)

    model = None
    if "--model" in sys.argv:
        index = sys.argv.index("--model")
        if index + 1 >= len(sys.argv):
            print("Missing path after --model")
            return 2
        model_path = Path(sys.argv[index + 1])
        try:
            model = load_model(json.loads(model_path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, ScoringModelError) as e:
            print(f"Could not load scoring model {model_path}: {e}")
            return 2
        print(f"Using scoring model: {model.name}")

    container = ApplicationContainer.create()
    try:
        stats = container.create_orchestrator().rescore_all(model)
    finally:
        container.close()

    print(f"Rescored {stats.updated} companies ({stats.errors} errors)")
    return 0 if stats.errors == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
