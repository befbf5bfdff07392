"""Default onboarding checklist used when HR does not supply custom steps."""
from typing import Any, Dict, List

from onboarding_hub.models.onboarding import AssigneeRole, StepCategory, StepPriority
from onboarding_hub.schemas.onboarding import Step

DEFAULT_ONBOARDING_STEPS: List[Dict[str, Any]] = [
    {
        "step_id": "welcome_orientation",
        "title": "Welcome & Company Orientation",
        "description": "Introduction to company culture, values, and overview",
        "category": StepCategory.orientation,
        "priority": StepPriority.high,
        "estimated_duration_hours": 4,
        "dependencies": [],
        "assigned_to_role": AssigneeRole.employee,
    },
    {
        "step_id": "hr_documentation",
        "title": "HR Documentation & Paperwork",
        "description": "Complete all required HR forms and documentation",
        "category": StepCategory.documentation,
        "priority": StepPriority.critical,
        "estimated_duration_hours": 2,
        "dependencies": [],
        "assigned_to_role": AssigneeRole.employee,
    },
    {
        "step_id": "it_setup",
        "title": "IT Setup & Account Creation",
        "description": "Set up computer, accounts, and access to systems",
        "category": StepCategory.setup,
        "priority": StepPriority.high,
        "estimated_duration_hours": 3,
        "dependencies": ["hr_documentation"],
        "assigned_to_role": AssigneeRole.it_team,
    },
    {
        "step_id": "department_introduction",
        "title": "Department Introduction",
        "description": "Meet team members and understand department structure",
        "category": StepCategory.meeting,
        "priority": StepPriority.medium,
        "estimated_duration_hours": 2,
        "dependencies": ["welcome_orientation"],
        "assigned_to_role": AssigneeRole.buddy,
    },
    {
        "step_id": "role_training",
        "title": "Role-Specific Training",
        "description": "Training specific to job role and responsibilities",
        "category": StepCategory.training,
        "priority": StepPriority.high,
        "estimated_duration_hours": 16,
        "dependencies": ["it_setup", "department_introduction"],
        "assigned_to_role": AssigneeRole.employee,
    },
    {
        "step_id": "compliance_training",
        "title": "Compliance & Safety Training",
        "description": "Complete mandatory compliance and safety training",
        "category": StepCategory.compliance,
        "priority": StepPriority.critical,
        "estimated_duration_hours": 4,
        "dependencies": [],
        "assigned_to_role": AssigneeRole.employee,
    },
]


def build_default_steps() -> List[Step]:
    """Fresh, pending copies of the default checklist."""
    return [Step(**{**data, "dependencies": list(data["dependencies"])}) for data in DEFAULT_ONBOARDING_STEPS]
