# bizpulse/data/usage.py
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanLimits:
    """订阅套餐的用量限制"""
    id: str
    name: str
    price: float
    max_analysis_runs: int
    max_data_upload_mb: int
    max_users: int


SUBSCRIPTION_PLANS: Dict[str, PlanLimits] = {
    'free': PlanLimits(id='free', name='Free Plan', price=0,
                       max_analysis_runs=5, max_data_upload_mb=5, max_users=1),
    'pro': PlanLimits(id='pro', name='Pro Plan', price=99,
                      max_analysis_runs=2000, max_data_upload_mb=1024, max_users=3),
    'pro_plus': PlanLimits(id='pro_plus', name='Pro Plus Plan', price=199,
                           max_analysis_runs=5000, max_data_upload_mb=5120, max_users=4),
}


class QuotaExceeded(Exception):
    """本月分析次数已用完"""

    def __init__(self, user_id: str, plan: PlanLimits, used: int):
        self.user_id = user_id
        self.plan = plan
        self.used = used
        super().__init__(
            f"User {user_id} has used {used}/{plan.max_analysis_runs} analysis runs on the {plan.name}"
        )


class UsageMeter:
    """内存中的用量计数器（按用户和自然月计数）

    只用于接口层在调用分析引擎前占用、失败时归还用量，引擎本身不计量。
    """

    def __init__(self, default_plan: str = 'free'):
        if default_plan not in SUBSCRIPTION_PLANS:
            raise ValueError(f"Unknown subscription plan: {default_plan}")
        self.default_plan = default_plan
        self._plans: Dict[str, str] = {}
        self._runs: Dict[Tuple[str, str], int] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _period(now: Optional[datetime]) -> str:
        return (now or datetime.now()).strftime('%Y-%m')

    def set_plan(self, user_id: str, plan_id: str):
        if plan_id not in SUBSCRIPTION_PLANS:
            raise ValueError(f"Unknown subscription plan: {plan_id}")
        with self._lock:
            self._plans[user_id] = plan_id
        logger.info(f"User {user_id} switched to plan {plan_id}")

    def plan_for(self, user_id: str) -> PlanLimits:
        return SUBSCRIPTION_PLANS[self._plans.get(user_id, self.default_plan)]

    def runs_used(self, user_id: str, now: Optional[datetime] = None) -> int:
        with self._lock:
            return self._runs.get((user_id, self._period(now)), 0)

    def remaining(self, user_id: str, now: Optional[datetime] = None) -> int:
        return max(0, self.plan_for(user_id).max_analysis_runs - self.runs_used(user_id, now))

    def check(self, user_id: str, now: Optional[datetime] = None):
        """用量已满时抛出 QuotaExceeded"""
        used = self.runs_used(user_id, now)
        plan = self.plan_for(user_id)
        if used >= plan.max_analysis_runs:
            logger.warning(f"Quota exceeded for user {user_id}: {used}/{plan.max_analysis_runs}")
            raise QuotaExceeded(user_id, plan, used)

    def reserve(self, user_id: str, now: Optional[datetime] = None) -> int:
        """在同一把锁内检查并占用一次运行，用量已满时抛出 QuotaExceeded

        运行失败时调用 release 归还。
        """
        period = self._period(now)
        plan = self.plan_for(user_id)
        with self._lock:
            self._prune(user_id, period)
            key = (user_id, period)
            used = self._runs.get(key, 0)
            if used >= plan.max_analysis_runs:
                logger.warning(f"Quota exceeded for user {user_id}: {used}/{plan.max_analysis_runs}")
                raise QuotaExceeded(user_id, plan, used)
            self._runs[key] = used + 1
            return used + 1

    def release(self, user_id: str, now: Optional[datetime] = None):
        """归还 reserve 占用的一次运行"""
        key = (user_id, self._period(now))
        with self._lock:
            used = self._runs.get(key, 0)
            if used <= 1:
                self._runs.pop(key, None)
            else:
                self._runs[key] = used - 1

    def _prune(self, user_id: str, period: str):
        # 丢弃更早月份的计数，调用方持有锁
        for key in [k for k in self._runs if k[0] == user_id and k[1] < period]:
            del self._runs[key]
