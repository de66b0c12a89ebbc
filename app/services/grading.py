"""
最终成绩汇总

导师评价（0-60）与企业评价（按满分折算为 0-40）相加得到总分，再按等级表取等级。
供导师待发布列表、发布、查看已发布结果和学生查询共用，保证各处结果一致。
"""
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Protocol

from app.models.evaluation import DEFAULT_COMPANY_MAX_MARKS

SUPERVISOR_WEIGHT = 60
COMPANY_WEIGHT = 40

# 按分数线降序排列，取第一个满足的等级
GRADE_SCALE = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
    (40, "D"),
)
FAIL_GRADE = "F"

# 等级从低到高的次序
GRADE_ORDER = (FAIL_GRADE,) + tuple(grade for _, grade in reversed(GRADE_SCALE))


class SupervisorMarks(Protocol):
    total_marks: int


class CompanyMarks(Protocol):
    total_marks: int
    max_marks: Optional[int]


@dataclass(frozen=True)
class FinalMarks:
    """汇总结果"""
    supervisor_marks: int
    company_marks: int
    total_marks: int
    grade: str

    @property
    def percentage(self) -> int:
        return self.total_marks

    def to_dict(self) -> dict:
        return asdict(self)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def scale_company_marks(total_marks: Optional[int], max_marks: Optional[int] = None) -> int:
    """企业评价折算为 40 分制，四舍五入（.5 进位）"""
    max_marks = max_marks or DEFAULT_COMPANY_MAX_MARKS
    total = Decimal(total_marks or 0)
    return round_half_up(total / Decimal(max_marks) * COMPANY_WEIGHT)


def grade_for(total_marks: int) -> str:
    """总分对应的等级"""
    for threshold, grade in GRADE_SCALE:
        if total_marks >= threshold:
            return grade
    return FAIL_GRADE


def grade_rank(grade: str) -> int:
    """等级次序，F 为 0，A+ 最高"""
    return GRADE_ORDER.index(grade)


def aggregate(
    supervisor_eval: Optional[SupervisorMarks],
    company_eval: Optional[CompanyMarks],
) -> FinalMarks:
    """
    汇总两份评价

    任一评价缺失时对应部分按 0 计；是否允许发布由 ReleaseGate 判断。
    """
    supervisor_marks = supervisor_eval.total_marks if supervisor_eval is not None else 0
    company_marks = 0
    if company_eval is not None:
        company_marks = scale_company_marks(company_eval.total_marks, company_eval.max_marks)

    total_marks = supervisor_marks + company_marks
    return FinalMarks(
        supervisor_marks=supervisor_marks,
        company_marks=company_marks,
        total_marks=total_marks,
        grade=grade_for(total_marks),
    )
