"""
The four promotion steps of the QA → Stage → Production pipeline.

A field reference is a (field, file role) pair: the field names come from
config.FIELDS, the file roles from config.FILES. Edit values are one of
{"literal": str}, {"input": key} (a prompted value) or {"copy": ref}.
"""

FIELD_LABELS = {
    "qa_ruleset": "ruleset",
    "job_stage": "job_stage",
    "ruleset_name": "ruleset",
}

PRE_PROD = "Pre_prod"
PROD = "Prod"

WORKFLOWS = {
    "qa-update": {
        "summary": "Set the QA ruleset file name and job_stage to Pre_prod.",
        "files": ["qa"],
        "checks": [],
        "edits": [
            {"target": ("qa_ruleset", "qa"), "value": {"input": "ruleset"}},
            {"target": ("job_stage", "qa"), "value": {"literal": PRE_PROD}},
        ],
        "branch": "tcsfsq-{ticket}-to-stage",
        "commit": "TCSFSQ: {ticket} update to Pre_prod",
        "change_request": False,
    },
    "qa-to-stage": {
        "summary": "Copy the QA ruleset into the Stage values file.",
        "files": ["qa_box_dev", "stage"],
        "checks": [],
        "edits": [
            {"target": ("ruleset_name", "stage"), "value": {"copy": ("qa_ruleset", "qa_box_dev")}},
        ],
        "branch": "tcsfs-{ticket}-stage-change",
        "commit": "TCFS: {ticket} File update to stage",
        "change_request": False,
    },
    "qa-promote-prod": {
        "summary": "Flip the QA job_stage from Pre_prod to Prod once Stage matches QA.",
        "files": ["qa_box_dev", "stage"],
        "checks": [
            {"kind": "match", "left": ("qa_ruleset", "qa_box_dev"), "right": ("ruleset_name", "stage")},
        ],
        "edits": [
            {"target": ("job_stage", "qa_box_dev"), "value": {"literal": PROD}},
        ],
        "branch": "tcsfsq-{ticket}-prod-update",
        "commit": "TCSFSQ: {ticket} update to Prod",
        "change_request": False,
    },
    "stage-to-prod": {
        "summary": "Copy the Stage ruleset into the Production values file.",
        "files": ["qa", "stage", "prod"],
        "checks": [
            {
                "kind": "equals",
                "field": ("job_stage", "qa"),
                "expected": PROD,
                "hint": "Run 'promoter qa-promote-prod' first to update QA job_stage to 'Prod'",
            },
            {"kind": "match", "left": ("qa_ruleset", "qa"), "right": ("ruleset_name", "stage")},
        ],
        "edits": [
            {"target": ("ruleset_name", "prod"), "value": {"copy": ("ruleset_name", "stage")}},
        ],
        "branch": "tcsfs-{ticket}-to-prod",
        "commit": "{change_request}: TCFS {ticket} to PRD-1",
        "change_request": True,
    },
}


def branch_name(name, ticket):
    return WORKFLOWS[name]["branch"].format(ticket=ticket)


def commit_message(name, ticket, change_request=None):
    return WORKFLOWS[name]["commit"].format(ticket=ticket, change_request=change_request)
