"""
Disclosure risk metrics for evaluating privacy protection in tabular datasets.

This module provides metrics that quantify disclosure risk by validating privacy
model compliance over equivalence classes of quasi-identifier values.

The module is organized into three privacy models:

1. **K-anonymity**: Measures re-identification risk through the size of the
   smallest equivalence class.

2. **L-diversity**: Measures attribute disclosure risk through the diversity of
   sensitive values within equivalence classes.

3. **T-closeness**: Measures attribute disclosure risk through the distance
   between each class's sensitive value distribution and the global one.

Key Insight: Privacy model validation IS disclosure risk calculation. Lower compliance
with privacy models (lower k, lower l, higher t distances) indicates higher disclosure risk.

Functions
---------
calculate_k_anonymity : Dict[str, Any]
    Calculate k-anonymity compliance across equivalence classes.

calculate_l_diversity : Dict[str, Any]
    Calculate distinct, entropy or recursive l-diversity of sensitive attributes.

calculate_t_closeness : Dict[str, Any]
    Calculate the Earth Mover's Distance of each class to the global distribution.

"""

from .k_anonymity import (
    calculate_k_anonymity,
    calculate_k_anonymity_score,
    generate_k_anonymity_insights,
    get_k_anonymity_violation_details,
)
from .l_diversity import (
    calculate_l_diversity,
    calculate_l_diversity_score,
    generate_l_diversity_insights,
    get_l_diversity_insights,
)
from .t_closeness import (
    calculate_t_closeness,
    calculate_t_closeness_score,
    generate_t_closeness_insights,
    get_t_closeness_insights,
)

__all__ = [
    "calculate_k_anonymity",
    "calculate_k_anonymity_score",
    "generate_k_anonymity_insights",
    "get_k_anonymity_violation_details",
    "calculate_l_diversity",
    "calculate_l_diversity_score",
    "generate_l_diversity_insights",
    "get_l_diversity_insights",
    "calculate_t_closeness",
    "calculate_t_closeness_score",
    "generate_t_closeness_insights",
    "get_t_closeness_insights",
]
