"""
Aggregation of per-file results into a batch summary, plus risk scoring,
recommendations and the markdown report.

Every function here is pure: aggregating the same results twice gives the
same summary.
"""

import re

from piiscope.models import (
    MAX_CONTEXT_LENGTH,
    AnalysisSummary,
    FileAnalysisResult,
    FileError,
    PIIFinding,
    PIIKind,
    RiskLevel,
)

HIGH_RISK_TYPES = {PIIKind.SSN, PIIKind.CREDIT_CARD}
REDACTION_MARKER = "[REDACTED]"

PII_TYPE_LABELS = {
    PIIKind.EMAIL: "Email Addresses",
    PIIKind.PHONE: "Phone Numbers",
    PIIKind.SSN: "Social Security Numbers",
    PIIKind.CREDIT_CARD: "Credit Card Numbers",
    PIIKind.NAME: "Names",
    PIIKind.ADDRESS: "Addresses",
}

PII_TYPE_EMOJI = {
    PIIKind.EMAIL: "📧",
    PIIKind.PHONE: "📱",
    PIIKind.SSN: "🆔",
    PIIKind.CREDIT_CARD: "💳",
    PIIKind.NAME: "👤",
    PIIKind.ADDRESS: "🏠",
}


def group_findings_by_type(findings: list[PIIFinding]) -> dict[PIIKind, int]:
    """Count findings per kind; only kinds that occur, in canonical order."""
    counts = {kind: 0 for kind in PIIKind}
    for finding in findings:
        counts[finding.type] += 1
    return {kind: count for kind, count in counts.items() if count}


def create_summary(results: list[FileAnalysisResult]) -> AnalysisSummary:
    successful = [r for r in results if r.success]
    failed = [r for r in results if not r.success]
    all_findings = [finding for r in successful for finding in r.findings]
    findings_by_type = group_findings_by_type(all_findings)

    return AnalysisSummary(
        total_files=len(results),
        successful_files=len(successful),
        failed_files=len(failed),
        total_pii_found=sum(findings_by_type.values()),
        findings_by_type=findings_by_type,
        analysis_complete=True,
        has_errors=bool(failed),
        errors=[FileError(filename=r.filename, error=r.error or "Unknown error") for r in failed],
        # files run concurrently, so the slowest one bounds the batch
        processing_time_ms=max((r.processing_time_ms for r in results), default=0),
    )


def get_risk_level(findings: list[PIIFinding]) -> RiskLevel:
    if not findings:
        return RiskLevel.LOW
    if any(f.type in HIGH_RISK_TYPES for f in findings):
        return RiskLevel.CRITICAL
    if len(findings) >= 10:
        return RiskLevel.HIGH
    if len(findings) >= 5:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def collect_findings(results: list[FileAnalysisResult]) -> list[PIIFinding]:
    return [finding for r in results if r.success for finding in r.findings]


def get_recommendations(summary: AnalysisSummary) -> list[str]:
    recommendations = []
    by_type = summary.findings_by_type

    if summary.total_pii_found == 0:
        recommendations.append("No PII detected - files appear to be safe for sharing")
    else:
        recommendations.append("PII detected - review before sharing or storing")
        if by_type.get(PIIKind.SSN) or by_type.get(PIIKind.CREDIT_CARD):
            recommendations.append(
                "High-risk PII found (SSN/Credit Cards) - handle with extreme caution"
            )
        if by_type.get(PIIKind.EMAIL):
            recommendations.append("Email addresses found - consider data privacy implications")
        if by_type.get(PIIKind.PHONE):
            recommendations.append(
                "Phone numbers detected - verify consent for contact information usage"
            )
        recommendations.append("Consider implementing data anonymization or encryption")

    if summary.has_errors:
        recommendations.append("Some files failed processing - manual review recommended")

    return recommendations


def format_pii_type(kind: PIIKind) -> str:
    return PII_TYPE_LABELS.get(kind, kind.value.replace("_", " ").upper())


def redact_sensitive_context(context: str, value: str) -> str:
    """Replace every occurrence of ``value`` (case-insensitive) and cap the length."""
    redacted = context
    if value:
        redacted = re.sub(re.escape(value), REDACTION_MARKER, redacted, flags=re.IGNORECASE)
    if len(redacted) > MAX_CONTEXT_LENGTH:
        redacted = redacted[:MAX_CONTEXT_LENGTH - 3] + "..."
    return redacted.strip()


def format_summary_markdown(summary: AnalysisSummary, risk_level: RiskLevel | None = None) -> str:
    lines = ["## 🔍 PII Analysis Results", "", "### 📊 Overview"]
    lines.append(
        f"- **Files Processed:** {summary.total_files} "
        f"({summary.successful_files} successful, {summary.failed_files} failed)"
    )
    lines.append(f"- **Total PII Instances Found:** {summary.total_pii_found}")
    if risk_level is not None:
        lines.append(f"- **Risk Level:** {risk_level.value.upper()}")
    if summary.processing_time_ms:
        lines.append(f"- **Processing Time:** {summary.processing_time_ms}ms")
    lines.append("")

    if summary.has_errors and summary.errors:
        lines.append("### ⚠️ Processing Errors")
        lines.extend(f"- **{e.filename}**: {e.error}" for e in summary.errors)
        lines.append("")

    if summary.total_pii_found > 0:
        lines.append("### 🚨 PII Detection Summary")
        for kind, count in summary.findings_by_type.items():
            plural = "s" if count > 1 else ""
            lines.append(
                f"- {PII_TYPE_EMOJI[kind]} **{format_pii_type(kind)}:** {count} instance{plural}"
            )
        lines.append("")
    elif summary.successful_files > 0:
        lines.append("### ✅ Clean Results")
        lines.append(
            "All successfully processed files appear to be clean of detectable "
            "personally identifiable information."
        )
        lines.append("")

    return "\n".join(lines) + "\n"


def format_file_details(result: FileAnalysisResult) -> str:
    """Per-file breakdown grouped by kind; empty for failed or clean files."""
    if not result.success or not result.findings:
        return ""

    lines = [f"#### 📄 {result.filename}"]
    for kind, count in group_findings_by_type(result.findings).items():
        lines.append("")
        lines.append(f"{PII_TYPE_EMOJI[kind]} **{format_pii_type(kind)}** ({count} found):")
        findings = [f for f in result.findings if f.type == kind]
        for number, finding in enumerate(findings, start=1):
            lines.append(
                f"  {number}. `{finding.value}` (Confidence: {round(finding.confidence * 100)}%)"
            )
            if finding.context and finding.context.strip():
                context = redact_sensitive_context(finding.context, finding.value)
                lines.append(f'     *Context:* "{context}"')

    return "\n".join(lines) + "\n\n"


def render_report(summary: AnalysisSummary, results: list[FileAnalysisResult]) -> str:
    risk_level = get_risk_level(collect_findings(results))
    report = format_summary_markdown(summary, risk_level)

    with_findings = [r for r in results if r.success and r.findings]
    if with_findings:
        report += "\n### Detailed Findings\n\n"
        report += "".join(format_file_details(r) for r in with_findings)

    recommendations = get_recommendations(summary)
    if recommendations:
        report += "\n### Recommendations\n\n"
        report += "".join(f"- {rec}\n" for rec in recommendations)

    return report
