"""命令行：读取上传模板 CSV，运行一种分析或线索生成并输出 JSON

用法:
    python scripts/analyze_csv.py sales.csv sales_forecasting
    python scripts/analyze_csv.py invoices.csv payment_analysis --now 2024-05-01
    python scripts/analyze_csv.py sales.csv top_customer_upsell --csv-out leads.csv
"""
import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd
from fastapi.encoders import jsonable_encoder

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import get_settings  # noqa: E402
from bizpulse.data.loaders import load_invoices_csv, load_sales_csv  # noqa: E402
from bizpulse.engine.core import (  # noqa: E402
    INVOICE_ANALYSES, INVOICE_LEADS, AnalysisType, LeadType
)
from bizpulse.leads.actions import export_leads_csv, lead_with_actions  # noqa: E402

logger = logging.getLogger(__name__)

ANALYSIS_TAGS = [t.value for t in AnalysisType]
LEAD_TAGS = [t.value for t in LeadType]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run a BizPulse analysis or lead generation on a CSV file")
    parser.add_argument("csv_path", help="sales or invoice CSV in the upload template format")
    parser.add_argument("type", choices=ANALYSIS_TAGS + LEAD_TAGS, help="analysis or lead type")
    parser.add_argument("--now", help="reference date (YYYY-MM-DD), defaults to today")
    parser.add_argument("--csv-out", help="write generated leads to this CSV file")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    settings = get_settings()
    engine = settings.build_engine()
    now = pd.Timestamp(args.now).to_pydatetime() if args.now else None

    if args.type in ANALYSIS_TAGS:
        kind = AnalysisType(args.type)
        loader = load_invoices_csv if kind in INVOICE_ANALYSES else load_sales_csv
        output = engine.run_analysis(kind, loader(args.csv_path), now=now)
    else:
        kind = LeadType(args.type)
        loader = load_invoices_csv if kind in INVOICE_LEADS else load_sales_csv
        output = engine.run_lead_generation(kind, loader(args.csv_path), now=now)
        if args.csv_out:
            Path(args.csv_out).write_text(export_leads_csv(output), encoding="utf-8")
            logger.info(f"Wrote {len(output)} leads to {args.csv_out}")
        output = [lead_with_actions(lead) for lead in output]

    print(json.dumps(jsonable_encoder(output), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
