"""Built-in word lists that can be seeded into the shared catalog."""
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from vocabmaster.models.domain import FrequencyBand, ItemDraft

# headword, phonetic, translation, example, frequency band
RawWord = Tuple[str, str, str, str, str]

CORE_TAG = "core"

SEED_CORE: List[RawWord] = [
    ("abandon", "/əˈbændən/", "放弃，抛弃", "He had to abandon his plan due to the rain.", "high"),
    ("abstract", "/ˈæbstrækt/", "抽象的，摘要", "The concept of justice is often abstract.", "medium"),
    ("academic", "/ˌækəˈdemɪk/", "学术的", "She has a brilliant academic record.", "high"),
    ("access", "/ˈækses/", "接近，入口", "Students need access to the library.", "high"),
    ("accommodate", "/əˈkɒmədeɪt/", "容纳，适应", "The hotel can accommodate 200 guests.", "medium"),
    ("accumulate", "/əˈkjuːmjəleɪt/", "积累，积聚", "I want to accumulate more experience.", "medium"),
    ("accurate", "/ˈækjərət/", "精确的", "The clock is very accurate.", "high"),
    ("acknowledge", "/əkˈnɒlɪdʒ/", "承认，感谢", "Please acknowledge receipt of this letter.", "high"),
    ("acquire", "/əˈkwaɪə(r)/", "获得，学到", "I hope to acquire some new skills.", "high"),
    ("adapt", "/əˈdæpt/", "适应，改编", "It took her a while to adapt to the new climate.", "high"),
    ("adequate", "/ˈædɪkwət/", "充足的，适当的", "The food was adequate for 10 people.", "medium"),
    ("adjust", "/əˈdʒʌst/", "调整，校准", "You should adjust your seat for comfort.", "high"),
    ("advocate", "/ˈædvəkeɪt/", "主张，提倡", "They advocate for environmental protection.", "medium"),
    ("affect", "/əˈfekt/", "影响", "Does smoking affect your health?", "high"),
    ("aggregate", "/ˈæɡrɪɡət/", "合计，聚合", "The aggregate loss reached 5 million dollars.", "low"),
    ("allocate", "/ˈæləkeɪt/", "分配，拨给", "The government will allocate more funds for education.", "medium"),
    ("alter", "/ˈɔːltə(r)/", "改变，变更", "Nothing can alter the fact.", "high"),
    ("alternative", "/ɔːlˈtɜːnətɪv/", "替代的，选择", "Is there an alternative way?", "high"),
    ("ambiguous", "/æmˈbɪɡjuəs/", "模棱两可的", "The instructions were quite ambiguous.", "low"),
    ("analyze", "/ˈænəlaɪz/", "分析", "We need to analyze the data carefully.", "high"),
    ("annual", "/ˈænjuəl/", "每年的，年度的", "The annual report is published in March.", "medium"),
    ("anticipate", "/ænˈtɪsɪpeɪt/", "预测，预料", "We anticipate a large crowd at the event.", "medium"),
    ("apparent", "/əˈpærənt/", "明显的", "The cause of the problem was apparent.", "medium"),
    ("appreciate", "/əˈpriːʃieɪt/", "欣赏，感激", "I really appreciate your help.", "high"),
    ("approach", "/əˈprəʊtʃ/", "靠近，方法", "He has a unique approach to problems.", "high"),
    ("appropriate", "/əˈprəʊpriət/", "适当的", "Is this dress appropriate for the party?", "high"),
    ("arbitrary", "/ˈɑːbɪtrəri/", "随意的，武断的", "The decision seemed arbitrary.", "low"),
    ("aspect", "/ˈæspekt/", "方面", "Consider every aspect of the problem.", "high"),
    ("assess", "/əˈses/", "评估，估算", "It is difficult to assess the damage.", "medium"),
    ("assume", "/əˈsjuːm/", "假设，承担", "I assume you are busy.", "high"),
    ("attain", "/əˈteɪn/", "达到，获得", "He finally attained his goal.", "medium"),
    ("attribute", "/əˈtrɪbjuːt/", "属性，归功于", "She attributes her success to hard work.", "medium"),
    ("benefit", "/ˈbenɪfɪt/", "利益，有益于", "Exercise has many benefits.", "high"),
    ("bias", "/ˈbaɪəs/", "偏见", "Scientists must avoid bias.", "low"),
    ("capacity", "/kəˈpæsəti/", "容量，能力", "The theater has a large capacity.", "medium"),
    ("circumstance", "/ˈsɜːkəmstəns/", "情况，环境", "Under no circumstances should you leave.", "high"),
    ("clarify", "/ˈklærəfaɪ/", "澄清", "Could you clarify that point?", "medium"),
    ("coherent", "/kəʊˈhɪərənt/", "连贯的", "He gave a coherent explanation.", "low"),
    ("compatible", "/kəmˈpætəbl/", "兼容的", "This software is not compatible.", "medium"),
    ("compensate", "/ˈkɒmpenseɪt/", "补偿", "Nothing can compensate for the loss.", "medium"),
]


@dataclass
class VocabDataset:
    """A named word list; every seeded item carries the dataset id as a tag."""
    id: str
    name: str
    description: str
    entries: List[ItemDraft] = field(default_factory=list)


def build_dataset(dataset_id: str, name: str, description: str, raw: List[RawWord]) -> VocabDataset:
    entries = [
        ItemDraft(
            headword=headword,
            phonetic=phonetic,
            translation=translation,
            example=example,
            tags=frozenset({dataset_id, CORE_TAG}),
            frequency_band=FrequencyBand(band),
        )
        for headword, phonetic, translation, example, band in raw
    ]
    return VocabDataset(id=dataset_id, name=name, description=description, entries=entries)


DATASETS: Dict[str, VocabDataset] = {
    "CET4_CORE": build_dataset(
        "CET4_CORE",
        "CET-4 core words",
        "High-frequency A-Z core vocabulary for the College English Test band 4.",
        SEED_CORE,
    ),
}


def get_dataset(dataset_id: str) -> VocabDataset:
    try:
        return DATASETS[dataset_id]
    except KeyError:
        raise ValueError(f"Unknown dataset: {dataset_id}") from None
