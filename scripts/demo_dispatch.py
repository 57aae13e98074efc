import os
from dataclasses import dataclass

from vent.core import log
from vent.core.dispatcher import Dispatcher
from vent.core.metrics import emit_snapshot


@dataclass
class BulletHit:
    target: str
    damage: int


@dataclass
class LevelComplete:
    level: int


def main():
    log.setup()
    l = log.get("demo")
    d = Dispatcher(name="demo")

    shield = {"hp": 15}

    def absorb(ev: BulletHit) -> bool:
        # shield eats the hit while it lasts
        if shield["hp"] <= 0:
            return False
        shield["hp"] -= ev.damage
        l.info("shield absorbed %d (left=%d)", ev.damage, shield["hp"])
        return True

    def wound(ev: BulletHit) -> bool:
        l.info("%s takes %d damage", ev.target, ev.damage)
        return False

    def next_level(ev: LevelComplete) -> bool:
        l.info("level %d complete", ev.level)
        if ev.level < 2:
            d.post(LevelComplete(ev.level + 1))
        return False

    d.before_any(lambda ev: l.debug("saw %s", ev))
    d.subscribe(BulletHit, absorb)
    d.subscribe(BulletHit, wound)
    d.subscribe(LevelComplete, next_level)

    for dmg in (10, 10, 10):
        d.post(BulletHit("player", dmg))
    d.post(LevelComplete(1))

    d.process()   # hits + level 1; level 2 is queued for the next drain
    d.process()
    emit_snapshot(json_mode=(os.getenv("LOG_JSON", "0") == "1"))


if __name__ == "__main__":
    main()
