"""
Curated reference library seed data.

Research summaries and supplement guides that are not backed by any
record source. Credibility scores are set per document because each
one was reviewed against its source by hand.
"""

from __future__ import annotations

from nutrition_rag.retrieval.document import Document, DocumentType, Goal, Metadata


def _reference(
    doc_id: str,
    title: str,
    body: str,
    source: str,
    tags: list[str],
    goals: list[Goal],
    credibility: float,
    doc_type: DocumentType = DocumentType.REFERENCE,
) -> Document:
    return Document(
        id=doc_id,
        content=f"{title}\n\n{body}",
        metadata=Metadata(
            type=doc_type,
            title=title,
            source=source,
            tags=frozenset(tags),
            goals=frozenset(goals),
            credibility_score=credibility,
        ),
    )


def get_reference_documents() -> list[Document]:
    """Research summaries on established nutrition science."""
    return [
        _reference(
            "research_protein_requirements",
            "Protein Requirements for Optimal Health",
            """Protein is essential for muscle maintenance, immune function, and overall health.
The recommended dietary allowance (RDA) for protein is 0.8g per kg of body weight for
sedentary adults. Active individuals may require 1.2-2.0g per kg body weight.
Complete proteins contain all essential amino acids and are found in animal products
and some plant sources like quinoa and soy. Protein timing around exercise can enhance
muscle protein synthesis.""",
            source="International Journal of Sport Nutrition",
            tags=["protein", "amino acids", "muscle", "exercise", "nutrition"],
            goals=[Goal.MUSCLE_GAIN, Goal.GENERAL_HEALTH],
            credibility=0.95,
        ),
        _reference(
            "research_carbohydrate_metabolism",
            "Carbohydrate Metabolism and Energy Production",
            """Carbohydrates are the body's primary energy source, particularly for high-intensity
exercise and brain function. Complex carbohydrates provide sustained energy and fiber,
while simple carbohydrates offer quick energy. The glycemic index measures how quickly
carbohydrates raise blood sugar. Low glycemic foods help maintain stable energy levels
and may support weight management. Timing carbohydrate intake around exercise can
optimize performance and recovery.""",
            source="Sports Medicine Research",
            tags=["carbohydrates", "glycemic index", "energy", "exercise", "blood sugar"],
            goals=[Goal.WEIGHT_LOSS, Goal.MUSCLE_GAIN, Goal.GENERAL_HEALTH],
            credibility=0.9,
        ),
        _reference(
            "research_micronutrient_health",
            "Micronutrients and Optimal Health",
            """Vitamins and minerals play crucial roles in metabolism, immune function, and disease
prevention. Vitamin D is essential for bone health and immune function, with many people
deficient due to limited sun exposure. B vitamins support energy metabolism and nervous
system function. Antioxidant vitamins (C, E) help protect against cellular damage.
Minerals like iron, zinc, and magnesium support various physiological processes.
A varied diet rich in fruits, vegetables, and whole foods typically provides adequate
micronutrients.""",
            source="American Journal of Clinical Nutrition",
            tags=["vitamins", "minerals", "micronutrients", "immune system", "metabolism"],
            goals=[Goal.GENERAL_HEALTH],
            credibility=0.95,
        ),
        _reference(
            "research_weight_management",
            "Evidence-Based Weight Management Strategies",
            """Sustainable weight management requires a moderate calorie deficit achieved through
diet and exercise. Rapid weight loss is often unsustainable and may lead to muscle loss.
A deficit of 300-500 calories per day typically results in 0.5-1 pound of weight loss
per week. Protein intake should be maintained or increased during weight loss to
preserve muscle mass. Fiber-rich foods promote satiety and help control calorie intake.
Regular physical activity supports weight maintenance and improves body composition.""",
            source="Obesity Research Journal",
            tags=["weight loss", "calorie deficit", "protein", "fiber", "exercise"],
            goals=[Goal.WEIGHT_LOSS],
            credibility=0.9,
        ),
    ]


def get_supplement_documents() -> list[Document]:
    """Evidence-based supplement guides."""
    return [
        _reference(
            "supplement_vitamin_d",
            "Vitamin D Supplementation Guide",
            """Vitamin D is crucial for bone health, immune function, and muscle strength. Many
people are deficient, especially those with limited sun exposure. The recommended dosage
is typically 1000-2000 IU daily for adults, though individual needs vary. Vitamin D3
(cholecalciferol) is generally preferred over D2. Best absorbed with fat-containing meals.
Regular blood testing can help determine optimal dosage. Deficiency symptoms may include
fatigue, bone pain, and frequent infections.""",
            source="NIH Office of Dietary Supplements",
            tags=["vitamin d", "bone health", "immune system", "deficiency"],
            goals=[Goal.GENERAL_HEALTH],
            credibility=0.95,
            doc_type=DocumentType.SUPPLEMENT_INFO,
        ),
        _reference(
            "supplement_omega3",
            "Omega-3 Fatty Acid Supplementation",
            """Omega-3 fatty acids (EPA and DHA) support heart health, brain function, and reduce
inflammation. Fish oil supplements typically provide 300-1000mg combined EPA/DHA daily.
Algae-based supplements offer a vegetarian alternative. Higher doses may be recommended
for specific health conditions under medical supervision. Look for third-party tested
products to ensure purity. Taking with meals reduces fishy aftertaste and improves
absorption.""",
            source="American Heart Association",
            tags=["omega-3", "fish oil", "heart health", "brain health", "inflammation"],
            goals=[Goal.GENERAL_HEALTH],
            credibility=0.9,
            doc_type=DocumentType.SUPPLEMENT_INFO,
        ),
        _reference(
            "supplement_protein_powder",
            "Protein Powder Supplementation Guide",
            """Protein powders can help meet daily protein needs, especially for active individuals
or those with increased requirements. Whey protein is quickly absorbed and ideal
post-workout. Casein protein digests slowly, making it suitable before bed. Plant-based
options include pea, rice, and hemp proteins. Most people need 20-30g protein per
serving. Timing around workouts can enhance muscle protein synthesis. Whole food sources
should remain the primary protein source.""",
            source="International Society of Sports Nutrition",
            tags=["protein powder", "whey", "casein", "plant protein", "muscle building"],
            goals=[Goal.MUSCLE_GAIN],
            credibility=0.85,
            doc_type=DocumentType.SUPPLEMENT_INFO,
        ),
    ]
