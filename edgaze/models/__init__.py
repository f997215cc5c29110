from edgaze.models.app_setting import AppSetting
from edgaze.models.bug_report import BugReport, BugReportAttachment
from edgaze.models.demo_run import DemoRun
from edgaze.models.profile import AdminRole, Profile
from edgaze.models.report import Report
from edgaze.models.workflow import Prompt, Workflow, WorkflowDraft
from edgaze.models.workflow_run import WorkflowRun

__all__ = [
    "AdminRole",
    "AppSetting",
    "BugReport",
    "BugReportAttachment",
    "DemoRun",
    "Profile",
    "Prompt",
    "Report",
    "Workflow",
    "WorkflowDraft",
    "WorkflowRun",
]
