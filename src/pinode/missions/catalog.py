"""Fixed catalog of promotional missions."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pinode.errors import NotFound


@dataclass(frozen=True)
class Mission:
    id: str
    title: str
    description: str
    reward: Decimal
    url: str
    kind: str


MISSIONS: tuple[Mission, ...] = (
    Mission(
        id="follow_twitter",
        title="Follow Twitter",
        description="Follow @pinodelabs on Twitter",
        reward=Decimal("200"),
        url="https://x.com/pinodelabs",
        kind="twitter_follow",
    ),
    Mission(
        id="join_telegram_channel",
        title="Join Telegram Channel",
        description="Join PiNode Labs Telegram Channel",
        reward=Decimal("200"),
        url="https://t.me/pinodelabscn",
        kind="telegram_channel",
    ),
    Mission(
        id="join_telegram_group",
        title="Join Telegram Group",
        description="Join PiNode Labs Telegram Group",
        reward=Decimal("200"),
        url="https://t.me/pinodelabs",
        kind="telegram_group",
    ),
    Mission(
        id="retweet_twitter_1",
        title="Retweet Twitter Post",
        description="Retweet our latest announcement",
        reward=Decimal("150"),
        url="https://x.com/pinodelabs/status/2016374488703893759",
        kind="twitter_retweet",
    ),
    Mission(
        id="retweet_twitter_2",
        title="Retweet Twitter Post",
        description="Retweet our community update",
        reward=Decimal("150"),
        url="https://x.com/pinodelabs/status/2016375862661361799",
        kind="twitter_retweet",
    ),
)

_BY_ID = {m.id: m for m in MISSIONS}


def get_mission(mission_id: str) -> Mission:
    try:
        return _BY_ID[mission_id]
    except KeyError:
        raise NotFound(f"Unknown mission: {mission_id}") from None
