#!/usr/bin/env python3
"""
Governance Checklist API — Demo Seed.

Creates one governance template ("Model Risk Governance" v1.0) with three
workflow templates and a small dependency chain, then projects a demo
project from it so the checklist endpoints have data to show.

Usage:
    python scripts/seed_demo.py                 # template + project
    python scripts/seed_demo.py --templates-only
    python scripts/seed_demo.py --reset         # drop and recreate tables first
"""

import argparse
import sys

sys.path.insert(0, ".")

from app import create_app
from app.models import db
import app.services.project_service as ps
import app.services.template_service as ts


# (workflow name, [(item name, type, [names of items it requires], metadata)])
_WORKFLOWS = [
    ("Development", [
        ("Data inventory", "document", [], {}),
        ("Feature review", "task", ["Data inventory"], {}),
        ("Model card", "document", ["Feature review"], {}),
    ]),
    ("Validation", [
        ("Independent validation", "task", ["Model card"], {}),
        ("Validation sign-off", "approval", ["Independent validation"], {"approverRole": "Head of Validation"}),
    ]),
    ("Deployment", [
        ("Monitoring plan", "document", [], {}),
        ("Go-live approval", "approval", ["Validation sign-off", "Monitoring plan"], {"approverRole": "CRO"}),
    ]),
]


def seed_templates():
    """Create the governance template and return it."""
    gov = ts.create_governance_template({
        "name": "Model Risk Governance",
        "version": "1.0",
        "description": "Lifecycle controls for production ML models",
    })

    ids_by_name = {}
    for wf_name, items in _WORKFLOWS:
        wf = ts.create_workflow_template({"governance_template_id": gov.id, "name": wf_name})
        for name, item_type, requires, metadata in items:
            tpl = ts.create_checklist_item_template({
                "workflow_template_id": wf.id,
                "name": name,
                "type": item_type,
                "metadata": metadata,
                "dependencies_requires": [ids_by_name[r] for r in requires],
            })
            ids_by_name[name] = tpl.id
        print(f"  workflow {wf_name}: {len(items)} items")

    return gov


def seed_project(gov):
    workflows = ts.list_workflow_templates(gov.id)
    project = ps.create_project({
        "name": "Credit scoring v3",
        "description": "Demo project",
        "governance_template_id": gov.id,
        "selected_workflow_template_ids": [w.id for w in workflows],
    })
    total = sum(w.checklist_item_instances.count() for w in project.workflow_instances)
    print(f"  project {project.name}: {project.workflow_instances.count()} workflows, {total} items")
    return project


def main():
    parser = argparse.ArgumentParser(description="Seed demo governance data")
    parser.add_argument("--templates-only", action="store_true", help="skip project creation")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.reset:
            db.drop_all()
            db.create_all()
            print("Tables recreated")

        print("Seeding governance template...")
        gov = seed_templates()
        if not args.templates_only:
            print("Projecting demo project...")
            seed_project(gov)

    print("Done.")


if __name__ == "__main__":
    main()
