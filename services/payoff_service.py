"""
計分服務：公共財投資遊戲的 Payoff 計算邏輯

純計算邏輯，只依賴玩家列表，不讀寫資料庫
"""
from dataclasses import dataclass, field
from typing import List, Sequence

from models import MULTIPLIER, TOTAL_BUDGET, Player
from core.exceptions import InvalidAllocation


@dataclass
class PlayerPayout:
    player_id: str
    name: str
    asset_a: int
    asset_b: int
    final_payout: float


@dataclass
class GameResults:
    b_total: int
    b_increased: float
    equal_share: float
    players: List[PlayerPayout] = field(default_factory=list)


def validate_allocation(asset_a, asset_b) -> None:
    """
    檢查投資分配是否合法

    規則：
    - 兩者都必須是整數（bool 不算）
    - 兩者都 >= 0
    - asset_a + asset_b == TOTAL_BUDGET

    異常：
        InvalidAllocation: 任一規則不符合
    """
    for value in (asset_a, asset_b):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidAllocation("Investments must be integers")

    if asset_a < 0 or asset_b < 0:
        raise InvalidAllocation("Investments must be non-negative")

    if asset_a + asset_b != TOTAL_BUDGET:
        raise InvalidAllocation(
            f"Investments must total {TOTAL_BUDGET}, got {asset_a + asset_b}"
        )


def calculate_payouts(players: Sequence[Player]) -> GameResults:
    """
    計算所有玩家的最終報酬

    公式：
    ┌──────────────────────────────────────────────┐
    │ b_total      = Σ asset_b                     │
    │ b_increased  = b_total × 1.5                 │
    │ equal_share  = b_increased / n               │
    │ final_payout = asset_a + equal_share         │
    └──────────────────────────────────────────────┘

    解釋：
    - asset_a 是「私人帳戶」，完全留給自己
    - asset_b 投入公共池，池子放大 1.5 倍後平分給所有人
    - 每個人都投公共池時全體最好，但自己少投、別人多投時自己最好

    參數：
        players: 房間內的玩家（依加入順序）

    返回：
        GameResults，players 依 final_payout 由高到低排序（同分維持加入順序）

    範例：
        (60, 40) + (100, 0) -> pool=40, increased=60, share=30
        -> payouts 90, 130
    """
    n = len(players)
    if n == 0:
        return GameResults(b_total=0, b_increased=0.0, equal_share=0.0)

    b_total = sum(p.asset_b or 0 for p in players)
    b_increased = b_total * MULTIPLIER
    equal_share = b_increased / n

    payouts = [
        PlayerPayout(
            player_id=p.id,
            name=p.name,
            asset_a=p.asset_a or 0,
            asset_b=p.asset_b or 0,
            final_payout=(p.asset_a or 0) + equal_share
        )
        for p in players
    ]
    # sorted 是 stable sort，同分時保留加入順序
    payouts = sorted(payouts, key=lambda item: item.final_payout, reverse=True)

    return GameResults(
        b_total=b_total,
        b_increased=b_increased,
        equal_share=equal_share,
        players=payouts
    )
