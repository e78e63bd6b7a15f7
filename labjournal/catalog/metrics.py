# ===============================
# File: labjournal/catalog/metrics.py
# ===============================
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class MetricCategory(str, Enum):
    INDEX = "综合指数"
    BLOOD_ROUTINE = "血常规"
    BIOCHEMISTRY = "生化"
    TUMOR_MARKER = "肿瘤标志物"

    @property
    def sort_order(self) -> int:
        return _CATEGORY_ORDER[self]

    @property
    def color(self) -> str:
        return _CATEGORY_COLOR[self]


_CATEGORY_ORDER = {
    MetricCategory.INDEX: 0,
    MetricCategory.BLOOD_ROUTINE: 1,
    MetricCategory.BIOCHEMISTRY: 2,
    MetricCategory.TUMOR_MARKER: 3,
}

_CATEGORY_COLOR = {
    MetricCategory.INDEX: "purple",
    MetricCategory.BLOOD_ROUTINE: "red",
    MetricCategory.BIOCHEMISTRY: "orange",
    MetricCategory.TUMOR_MARKER: "blue",
}


@dataclass(frozen=True)
class MetricDefinition:
    key: str
    display_name: str
    short_name: str
    brief_name: str
    unit: str
    category: MetricCategory
    normal_range_text: str
    sort_order: int
    is_key_metric: bool = False
    color: Optional[str] = None

    @property
    def chart_color(self) -> str:
        return self.color or self.category.color


_I = MetricCategory.INDEX
_B = MetricCategory.BLOOD_ROUTINE
_C = MetricCategory.BIOCHEMISTRY
_T = MetricCategory.TUMOR_MARKER

# key, display name (as printed on the lab sheet), short, brief, unit, category, range, order
_ROWS = [
    # Composite indices
    ("nlr", "NLR", "NLR", "NLR", "", _I, "1–3\n>3表示炎症增加", 0),
    ("plr", "PLR", "PLR", "PLR", "", _I, "健康人：< 150\n150–300：轻度炎症", 1),
    (
        "lmr", "LMR", "LMR", "LMR", "", _I,
        "> 4：免疫状态良好\n< 2–3：往往提示不良预后、炎症、肿瘤负荷大", 2,
    ),
    (
        "pni", "PNI", "PNI", "PNI", "", _I,
        "PNI=10×白蛋白(g/dL)+0.005×淋巴细胞(/mm³)\n> 50：营养状况极佳\n45–50：可接受\n"
        "< 40：有营养不良/免疫弱化风险",
        3,
    ),
    # Complete blood count: white cells
    ("wbc", "白细胞计数", "WBC", "白细胞", "10⁹/L", _B, "3.5–9.5", 10),
    ("neutPercent", "中性粒细胞百分数", "NEUT%", "中性粒%", "%", _B, "40–75", 11),
    ("lymphPercent", "淋巴细胞百分数", "LYM%", "淋巴%", "%", _B, "20–50", 12),
    ("monoPercent", "单核细胞百分数", "MONO%", "单核%", "%", _B, "3–10", 13),
    ("eoPercent", "嗜酸性粒细胞百分数", "EO%", "嗜酸%", "%", _B, "0.4–8", 14),
    ("basoPercent", "嗜碱性粒细胞百分数", "BASO%", "嗜碱%", "%", _B, "0–1", 15),
    ("neutAbs", "中性粒细胞绝对值", "NEUT#", "中性粒#", "10⁹/L", _B, "1.8–6.3", 16),
    ("lymphAbs", "淋巴细胞绝对值", "LYM#", "淋巴#", "10⁹/L", _B, "1.1–3.2", 17),
    ("monoAbs", "单核细胞绝对值", "MONO#", "单核#", "10⁹/L", _B, "0.1–0.6", 18),
    ("eoAbs", "嗜酸性粒细胞绝对值", "EO#", "嗜酸#", "10⁹/L", _B, "0.02–0.52", 19),
    ("basoAbs", "嗜碱性粒细胞绝对值", "BASO#", "嗜碱#", "10⁹/L", _B, "0–0.06", 20),
    # Complete blood count: red cells
    ("rbc", "红细胞计数", "RBC", "红细胞", "10¹²/L", _B, "4.3–5.8", 30),
    ("hgb", "血红蛋白", "HGB", "血红蛋白", "g/L", _B, "130–175", 31),
    ("hct", "红细胞比容", "HCT", "红细胞比容", "%", _B, "40–50", 32),
    ("mcv", "平均红细胞体积（MCV）", "MCV", "MCV", "fL", _B, "82–100", 33),
    ("mch", "平均红细胞血红蛋白（MCH）", "MCH", "MCH", "pg", _B, "27–34", 34),
    ("mchc", "平均红细胞血红蛋白浓度（MCHC）", "MCHC", "MCHC", "g/L", _B, "316–354", 35),
    ("rdwCv", "RBC体积分布宽度（RDW-CV）", "RDW-CV", "RDW-CV", "%", _B, "11–16", 36),
    ("rdwSd", "RBC体积分布宽度（RDW-SD）", "RDW-SD", "RDW-SD", "", _B, "39–52.3", 37),
    # Complete blood count: platelets
    ("plt", "血小板计数", "PLT", "血小板", "10⁹/L", _B, "125–350", 40),
    ("mpv", "平均血小板体积", "MPV", "MPV", "fL", _B, "9–13", 41),
    ("pct", "血小板比容", "PCT", "血小板比容", "%", _B, "0.11–0.31", 42),
    ("pLcr", "大血小板比例", "P-LCR", "大血小板比例", "%", _B, "17.5–42.3", 43),
    # Biochemistry: liver
    ("tbil", "总胆红素", "TBIL", "总胆红素", "μmol/L", _C, "3.4–20.5", 50),
    ("dbil", "直接胆红素", "DBIL", "直接胆红素", "μmol/L", _C, "0–8.6", 51),
    ("ibil", "间接胆红素", "IBIL", "间接胆红素", "μmol/L", _C, "3–19", 52),
    ("tp", "总蛋白", "TP", "总蛋白", "g/L", _C, "65–85", 53),
    ("alb", "白蛋白", "ALB", "白蛋白", "g/L", _C, "40–55", 54),
    ("glob", "球蛋白", "GLOB", "球蛋白", "g/L", _C, "20–40", 55),
    ("agRatio", "白球比", "A/G", "白球比", "", _C, "1.2–2.4", 56),
    ("alt", "丙氨酸氨基转移酶（ALT）谷丙", "ALT", "谷丙", "U/L", _C, "9–50", 57),
    ("ast", "门冬氨酸氨基转移酶（AST）", "AST", "谷草", "U/L", _C, "15–40", 58),
    ("astAltRatio", "谷草/谷丙比值", "AST/ALT", "谷草/谷丙", "", _C, "—", 59),
    ("alp", "碱性磷酸酶（ALP）", "ALP", "碱性磷酸酶", "U/L", _C, "30–120", 60),
    ("ggt", "谷氨酰转肽酶（GGT）", "GGT", "谷氨酰转肽酶", "U/L", _C, "10–60", 61),
    # Biochemistry: kidney
    ("bun", "尿素氮（BUN）", "BUN", "尿素氮", "mmol/L", _C, "1.7–8.3", 70),
    ("uricAcid", "尿酸", "UA", "尿酸", "μmol/L", _C, "208–428", 71),
    ("creatinine", "肌酐", "Cr", "肌酐", "μmol/L", _C, "58–110", 72),
    ("egfr", "肾小球滤过率（eGFR）", "eGFR", "eGFR", "ml/min", _C, ">90", 73),
    # Tumour markers
    ("cea", "癌胚抗原（CEA）", "CEA", "CEA", "ng/ml", _T, "<5.0", 80),
    ("ca125", "糖类抗原 CA125", "CA125", "CA125", "U/ml", _T, "<35", 81),
    ("ca199", "糖类抗原 CA199", "CA199", "CA199", "U/ml", _T, "<30", 82),
]

KEY_METRIC_KEYS = ("wbc", "neutAbs", "hgb", "plt")

_KEY_METRIC_COLORS = {"wbc": "blue", "neutAbs": "green", "hgb": "red", "plt": "purple"}


def _build_catalog() -> Dict[str, MetricDefinition]:
    out: Dict[str, MetricDefinition] = {}
    for key, display, short, brief, unit, category, ref_range, order in _ROWS:
        out[key] = MetricDefinition(
            key=key,
            display_name=display,
            short_name=short,
            brief_name=brief,
            unit=unit,
            category=category,
            normal_range_text=ref_range,
            sort_order=order,
            is_key_metric=key in KEY_METRIC_KEYS,
            color=_KEY_METRIC_COLORS.get(key),
        )
    return out


CATALOG: Dict[str, MetricDefinition] = _build_catalog()

_BY_DISPLAY_NAME: Dict[str, MetricDefinition] = {d.display_name: d for d in CATALOG.values()}

if len(_BY_DISPLAY_NAME) != len(CATALOG):
    raise RuntimeError("metric catalog has duplicate display names")
if len({d.sort_order for d in CATALOG.values()}) != len(CATALOG):
    raise RuntimeError("metric catalog has duplicate sort orders")

_ORDERED: List[MetricDefinition] = sorted(
    CATALOG.values(), key=lambda d: (d.category.sort_order, d.sort_order)
)


def lookup_by_key(key: str) -> Optional[MetricDefinition]:
    return CATALOG.get(key)


def lookup_by_display_name(name: str) -> Optional[MetricDefinition]:
    """Resolve a lab-sheet field name (e.g. '白细胞计数') to its metric."""
    if name is None:
        return None
    return _BY_DISPLAY_NAME.get(name.strip())


def all_definitions() -> List[MetricDefinition]:
    return list(_ORDERED)


def key_metrics() -> List[MetricDefinition]:
    return [CATALOG[k] for k in KEY_METRIC_KEYS]


def grouped_by_category() -> Dict[MetricCategory, List[MetricDefinition]]:
    out: Dict[MetricCategory, List[MetricDefinition]] = {}
    for category in sorted(MetricCategory, key=lambda c: c.sort_order):
        out[category] = [d for d in _ORDERED if d.category is category]
    return out


def sort_key(key: str) -> int:
    """Catalog sort order for a metric key; unknown keys sort last."""
    definition = CATALOG.get(key)
    return definition.sort_order if definition else 10_000
