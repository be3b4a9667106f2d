"""
Report export: JSON dump and a paginated PDF.

PDF pages are A4 canvases drawn with Pillow (text, gauge and bar charts,
optional timeline) and written out with Pillow's PDF encoder, so no
browser or extra PDF library is needed.
"""

import io
import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from PIL import Image, ImageDraw, ImageFont

from app.analysis.explainer import explain
from app.analysis.normalizer import round_half_up
from app.config import settings
from app.schemas.analysis import AnalysisResult
from app.schemas.reports import ReportOptions
from app.services.chart_data import HIGH_RISK_COLOR, MEDIUM_RISK_COLOR, category_data, confidence_level, timeline

logger = logging.getLogger(__name__)

FOOTER_TEXT = "Generated by ITL DeepFake Detection System"

DISCLAIMER = """IMPORTANT NOTICE:

1. Accuracy Limitations: While this deepfake detection system uses advanced AI algorithms, no detection system is 100% accurate. Results should be considered as one factor in content verification, not as definitive proof.

2. Technology Evolution: Deepfake generation technology is rapidly evolving. New techniques may not be detected by current algorithms.

3. Context Matters: Consider the source, context, and other verification methods when evaluating content authenticity.

4. Legal Considerations: This report is provided for informational purposes only and should not be used as sole evidence in legal proceedings without additional verification.

5. Data Privacy: Analysis data is processed according to our privacy policy. No content is stored permanently on our servers after analysis.

6. Technical Support: For questions about this report or the analysis methodology, contact our technical support team.

Generated by ITL DeepFake Detection System v1.0
Powered by Reality Defender API"""

TEXT_COLOR = "#1f2937"
MUTED_COLOR = "#6b7280"
TRACK_COLOR = "#e5e7eb"


def _with_explanation(analysis: AnalysisResult) -> AnalysisResult:
    if analysis.explanation is not None:
        return analysis
    return analysis.model_copy(update={"explanation": explain(analysis)})


def export_json(analysis: AnalysisResult) -> str:
    """AnalysisResult plus its DetailedExplanation, pretty-printed."""
    data = _with_explanation(analysis).model_dump(mode="json", exclude={"thumbnail_blob"})
    return json.dumps(data, indent=2)


def risk_level(confidence: float) -> str:
    if confidence < 0.3:
        return "LOW"
    if confidence < 0.7:
        return "MODERATE"
    return "HIGH"


def _mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f} MB"


def _seconds(processing_time_ms: float) -> int:
    return round_half_up(processing_time_ms / 1000)


class _PdfCanvas:
    """Sequential page writer: text flows down the page and breaks onto new pages."""

    def __init__(self):
        self.dpi = settings.pdf_dpi
        self.width, self.height = settings.pdf_page_size
        self.margin = round(settings.pdf_margin_mm / 25.4 * self.dpi)
        self.content_width = self.width - 2 * self.margin
        self.pages: List[Image.Image] = []
        self._fonts = {}
        self._new_page()

    def px(self, points: float) -> int:
        return round(points * self.dpi / 72)

    def font(self, points: int):
        if points not in self._fonts:
            self._fonts[points] = ImageFont.load_default(size=self.px(points))
        return self._fonts[points]

    def _new_page(self) -> None:
        page = Image.new("RGB", (self.width, self.height), "white")
        self.pages.append(page)
        self.draw = ImageDraw.Draw(page)
        self.y = self.margin

    def ensure_space(self, needed: int) -> None:
        # keep the bottom margin free for the footer
        if self.y + needed > self.height - self.margin:
            self._new_page()

    def _wrap(self, text: str, font) -> List[str]:
        lines = []
        for paragraph in text.split("\n"):
            if not paragraph.strip():
                lines.append("")
                continue
            current = ""
            for word in paragraph.split(" "):
                candidate = f"{current} {word}" if current else word
                if self.draw.textlength(candidate, font=font) <= self.content_width:
                    current = candidate
                    continue
                if current:
                    lines.append(current)
                # hard-break tokens wider than the page
                while self.draw.textlength(word, font=font) > self.content_width and len(word) > 1:
                    cut = len(word)
                    while cut > 1 and self.draw.textlength(word[:cut], font=font) > self.content_width:
                        cut -= 1
                    lines.append(word[:cut])
                    word = word[cut:]
                current = word
            lines.append(current)
        return lines

    def text(self, text: str, points: int = 11, color: str = TEXT_COLOR, align: str = "left") -> None:
        font = self.font(points)
        line_height = round(self.px(points) * 1.4)
        for line in self._wrap(text.strip("\n"), font):
            self.ensure_space(line_height)
            x = self.margin
            if align == "center":
                x = (self.width - self.draw.textlength(line, font=font)) / 2
            self.draw.text((x, self.y), line, font=font, fill=color)
            self.y += line_height

    def title(self, text: str, points: int = 16) -> None:
        self.ensure_space(self.px(points) * 3)
        self.y += self.px(points) // 2
        self.text(text, points)
        self.y += self.px(points) // 3

    def rule(self) -> None:
        self.y += self.px(4)
        self.draw.line((self.margin, self.y, self.width - self.margin, self.y), fill=MUTED_COLOR, width=max(1, self.px(0.75)))
        self.y += self.px(10)

    def bar(self, label: str, value: int, color: str) -> None:
        """Labelled horizontal bar for a 0-100 value."""
        font = self.font(10)
        bar_height = self.px(12)
        self.ensure_space(bar_height + self.px(20))
        self.draw.text((self.margin, self.y), f"{label}: {value}%", font=font, fill=TEXT_COLOR)
        self.y += self.px(14)
        left, right = self.margin, self.width - self.margin
        self.draw.rectangle((left, self.y, right, self.y + bar_height), fill=TRACK_COLOR)
        filled = left + (right - left) * max(0, min(100, value)) / 100
        if filled > left:
            self.draw.rectangle((left, self.y, filled, self.y + bar_height), fill=color)
        self.y += bar_height + self.px(8)

    def line_chart(self, values: List[int], markers: List[bool], height_points: int = 140) -> None:
        chart_height = self.px(height_points)
        self.ensure_space(chart_height + self.px(10))
        left, right = self.margin, self.width - self.margin
        top, bottom = self.y, self.y + chart_height

        self.draw.rectangle((left, top, right, bottom), outline=TRACK_COLOR, width=max(1, self.px(0.75)))
        for pct in (30, 70):
            y = bottom - chart_height * pct / 100
            self.draw.line((left, y, right, y), fill=TRACK_COLOR, width=1)

        if values:
            step = (right - left) / max(1, len(values) - 1)
            points = [(left + i * step, bottom - chart_height * v / 100) for i, v in enumerate(values)]
            if len(points) > 1:
                self.draw.line(points, fill=MEDIUM_RISK_COLOR, width=max(1, self.px(1.5)))
            radius = self.px(2.5)
            for (x, y), flagged in zip(points, markers):
                if flagged:
                    self.draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=HIGH_RISK_COLOR)
        self.y = bottom + self.px(10)

    def add_footers(self) -> None:
        font = self.font(8)
        total = len(self.pages)
        for index, page in enumerate(self.pages, start=1):
            draw = ImageDraw.Draw(page)
            label = f"Page {index} of {total} | {FOOTER_TEXT}"
            x = (self.width - draw.textlength(label, font=font)) / 2
            draw.text((x, self.height - self.margin // 2 - self.px(8)), label, font=font, fill=MUTED_COLOR)

    def to_pdf(self) -> bytes:
        buffer = io.BytesIO()
        self.pages[0].save(
            buffer,
            format="PDF",
            save_all=True,
            append_images=self.pages[1:],
            resolution=float(self.dpi),
        )
        return buffer.getvalue()


def _header(canvas: _PdfCanvas, analysis: AnalysisResult, generated_at: datetime) -> None:
    canvas.text(settings.report_title, 20, align="center")
    canvas.y += canvas.px(8)
    canvas.text(f"Analysis Report: {analysis.filename}", 16)
    canvas.text(f"Generated on: {generated_at.strftime('%Y-%m-%d at %H:%M:%S UTC')}", 10, MUTED_COLOR)
    canvas.text(f"Analysis Date: {analysis.timestamp[:10]}", 10, MUTED_COLOR)
    canvas.rule()


def _executive_summary(canvas: _PdfCanvas, analysis: AnalysisResult) -> None:
    level = risk_level(analysis.confidence)
    pct = round_half_up(analysis.confidence * 100)
    if analysis.prediction == "authentic":
        verdict = "The content appears to be authentic with no significant signs of artificial manipulation detected."
    else:
        verdict = (
            "The content shows signs of potential artificial generation or manipulation "
            "and should be treated with caution."
        )

    canvas.title("Executive Summary")
    canvas.text(
        f"File: {analysis.filename}\n"
        f"Risk Level: {level} ({pct}% confidence)\n"
        f"Prediction: {analysis.prediction}\n"
        f"Processing Time: {_seconds(analysis.processing_time)} seconds\n"
        f"File Size: {_mb(analysis.file_size)}\n"
        f"File Type: {analysis.file_type}"
    )
    canvas.y += canvas.px(6)
    canvas.text(
        "Analysis Results:\n"
        "The file has been analyzed using advanced deepfake detection algorithms. Based on the analysis, "
        f"this content has a {level.lower()} probability of being artificially generated or manipulated. "
        f"The confidence score of {pct}% indicates the system's certainty in this assessment.\n\n"
        f"{verdict}"
    )

    explanation = analysis.explanation
    if explanation is not None and explanation.summary.recommended_actions:
        canvas.y += canvas.px(6)
        canvas.text("Recommended actions:\n" + "\n".join(f"- {a}" for a in explanation.summary.recommended_actions))


def _charts(canvas: _PdfCanvas, analysis: AnalysisResult) -> None:
    canvas.title("Visual Analysis")
    canvas.text("Confidence Analysis", 12)
    level = confidence_level(analysis.confidence)
    canvas.bar(level.label, level.percentage, level.color)

    canvas.text("Category Breakdown", 12)
    for item in category_data(analysis):
        canvas.bar(item.name, item.value, item.color)


def _timeline(canvas: _PdfCanvas, analysis: AnalysisResult) -> None:
    points = timeline(analysis)
    canvas.title("Timeline Analysis", 14)
    if points and points[0].synthetic:
        canvas.text("Illustrative curve around the overall score; no per-frame data was returned.", 9, MUTED_COLOR)
    canvas.line_chart([p.confidence for p in points], [p.anomalies > 0 for p in points])


def _technical_details(canvas: _PdfCanvas, analysis: AnalysisResult) -> None:
    details = analysis.details
    metadata = details.metadata

    canvas.title("Technical Analysis Details")

    duration = f"{round_half_up(metadata.duration)}s" if metadata.duration else "N/A"
    canvas.text("File Metadata", 12)
    canvas.text(
        f"Type: {analysis.file_type}\n"
        f"Size: {_mb(analysis.file_size)}\n"
        f"Duration: {duration}\n"
        f"Resolution: {metadata.resolution or 'N/A'}\n"
        f"Analysis ID: {analysis.id}"
    )

    canvas.text("Processing Information", 12)
    canvas.text(
        f"Processing Time: {_seconds(analysis.processing_time)} seconds\n"
        "Analysis Algorithm: Reality Defender API\n"
        f"Models: {metadata.completed_models}/{metadata.models_analyzed} completed (score source: {details.score_source})\n"
        f"Timestamp: {analysis.timestamp}"
    )

    canvas.text("Category Analysis", 12)
    canvas.text("\n".join(f"{name}: {score}%" for name, score in details.category_breakdown.model_dump().items()))

    if details.frame_analysis:
        frames = details.frame_analysis
        average = sum(f.confidence for f in frames) / len(frames) * 100
        canvas.text("Frame Analysis", 12)
        canvas.text(
            f"Total Frames Analyzed: {len(frames)}\n"
            f"Average Frame Confidence: {average:.1f}%\n"
            f"Suspicious Frames: {sum(1 for f in frames if f.confidence > 0.7)}"
        )

    if details.audio_analysis and details.audio_analysis.segments:
        segments = details.audio_analysis.segments
        average = sum(s.confidence for s in segments) / len(segments) * 100
        canvas.text("Audio Analysis", 12)
        canvas.text(
            f"Audio Segments Analyzed: {len(segments)}\n"
            f"Average Audio Confidence: {average:.1f}%\n"
            f"Audio Anomalies Found: {sum(1 for s in segments if s.anomalies)}"
        )


def render_pdf(
    analysis: AnalysisResult,
    options: Optional[ReportOptions] = None,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Multi-page A4 PDF report for one analysis."""
    options = options or ReportOptions()
    generated_at = generated_at or datetime.now(timezone.utc)
    analysis = _with_explanation(analysis)

    canvas = _PdfCanvas()
    _header(canvas, analysis, generated_at)
    _executive_summary(canvas, analysis)
    if options.include_charts:
        _charts(canvas, analysis)
    if options.include_timeline:
        _timeline(canvas, analysis)
    _technical_details(canvas, analysis)
    if options.include_raw_data:
        canvas.title("Raw Analysis Data")
        canvas.text(json.dumps(analysis.model_dump(mode="json", exclude={"thumbnail_blob"}), indent=2), 7)
    canvas.title("Disclaimer and Limitations", 14)
    canvas.text(DISCLAIMER, 10)
    canvas.add_footers()

    pdf = canvas.to_pdf()
    logger.info(f"[REPORT] Rendered PDF for {analysis.id}: {len(canvas.pages)} pages, {len(pdf)} bytes")
    return pdf
