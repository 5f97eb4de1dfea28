from __future__ import annotations

from datetime import datetime, timezone
from html import escape
from typing import Callable, List, Optional

from resumeai.core import MSG_UPDATE_FAILED, AnalysisResult, ValidationError
from resumeai.logger import ContextLogger

log = ContextLogger("report")


class ReportView:
    """
    Results-side state: the busy flag and the "simulate adding a skill" action.

    At most one re-estimation runs at a time. While it runs, the current result
    stays readable; on success it is replaced as a whole through `on_update`,
    on failure it is left alone and `alert` is set.
    """

    def __init__(
        self,
        client,
        get_result: Callable[[], Optional[AnalysisResult]],
        on_update: Callable[[AnalysisResult, AnalysisResult], None],
    ):
        self.client = client
        self.get_result = get_result
        self.on_update = on_update
        self.busy = False
        self.alert: Optional[str] = None

    def begin(self) -> bool:
        """Claim the busy flag. False means a re-estimation is already in flight."""
        if self.busy:
            return False
        self.busy = True
        self.alert = None
        return True

    async def resolve(self, skill: str) -> Optional[AnalysisResult]:
        """Run a claimed re-estimation and release the busy flag."""
        try:
            current = self.get_result()
            if current is None:
                log.warning(f"No result to re-estimate for '{skill}'")
                return None
            try:
                updated = await self.client.reestimate_with_skill(current, skill)
            except Exception as e:
                log.error(f"Re-estimation with '{skill}' failed: {e}")
                if self.get_result() is current:
                    self.alert = MSG_UPDATE_FAILED
                return None
            self.on_update(updated, current)
            return updated
        finally:
            self.busy = False

    async def add_skill(self, skill: str) -> bool:
        """
        Simulate adding `skill` to the resume.

        Returns False without calling the model when another re-estimation is
        still pending.
        """
        if not (skill or "").strip():
            raise ValidationError("Skill must not be blank.")
        if not self.begin():
            log.debug(f"Busy; ignoring request for '{skill}'")
            return False
        await self.resolve(skill)
        return True


def _score_class(score: int) -> str:
    if score >= 75:
        return "emerald"
    if score >= 50:
        return "gold"
    return "red"


def render_html_report(result: AnalysisResult, filename: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    def li(items: List[str]) -> str:
        return "".join([f"<li>{escape(x)}</li>" for x in items]) if items else "<li>—</li>"

    def chips(items: List[str], css: str) -> str:
        if not items:
            return "<div class='muted'>—</div>"
        return "".join([f'<span class="chip {css}">{escape(x)}</span>' for x in items])

    missing = (
        chips(result.missing_skills, "miss")
        if result.missing_skills
        else "<div class='muted'>No critical skills missing!</div>"
    )

    html = f"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <title>Resume Analysis Report</title>
  <style>
    body {{
      font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Arial;
      background: #0F172A;
      color: #E7E9EE;
      margin: 0; padding: 24px;
    }}
    .wrap {{ max-width: 980px; margin: 0 auto; }}
    .hero {{
      background: radial-gradient(900px 300px at 10% 0%, rgba(59,130,246,0.18), transparent 60%),
                  radial-gradient(900px 300px at 90% 0%, rgba(147,51,234,0.16), transparent 60%),
                  #111827;
      border: 1px solid rgba(255,255,255,0.08);
      border-radius: 18px;
      padding: 18px 18px;
    }}
    .row {{ display: grid; grid-template-columns: 1fr 1fr; gap: 14px; margin-top: 14px; }}
    .panel {{
      background: rgba(255,255,255,0.03);
      border: 1px solid rgba(255,255,255,0.08);
      border-radius: 16px;
      padding: 14px;
    }}
    .kpi {{ font-size: 34px; font-weight: 800; letter-spacing: -0.02em; }}
    .muted {{ color: rgba(231,233,238,0.7); font-size: 13px; }}
    .gold {{ color: #F59E0B; }}
    .emerald {{ color: #10B981; }}
    .red {{ color: #F87171; }}
    .chip {{
      display: inline-block;
      padding: 4px 10px;
      margin: 0 6px 6px 0;
      border-radius: 999px;
      font-size: 13px;
    }}
    .chip.match {{ color: #93C5FD; background: rgba(59,130,246,0.2); border: 1px solid rgba(59,130,246,0.3); }}
    .chip.miss {{ color: #FCD34D; background: rgba(245,158,11,0.1); border: 1px solid rgba(245,158,11,0.3); }}
    ul {{ margin: 8px 0 0 18px; }}
    ol {{ margin: 8px 0 0 18px; }}
    @media (max-width: 820px) {{
      .row {{ grid-template-columns: 1fr; }}
    }}
  </style>
</head>
<body>
  <div class="wrap">
    <div class="hero">
      <div class="muted">Generated: {now}</div>
      <h1 style="margin:8px 0 0; font-size: 22px;">Analysis Complete</h1>
      <div class="muted">Filename: {escape(filename or "—")}</div>
      <p>{escape(result.summary)}</p>
    </div>

    <div class="row">
      <div class="panel">
        <div class="muted">Match Score</div>
        <div class="kpi"><span class="{_score_class(result.match_score)}">{result.match_score}</span><span class="muted"> / 100</span></div>
      </div>
      <div class="panel">
        <div class="muted">ATS Friendly</div>
        <div class="kpi"><span class="{_score_class(result.ats_score)}">{result.ats_score}</span><span class="muted"> / 100</span></div>
      </div>
    </div>

    <div class="row">
      <div class="panel">
        <div class="muted">Matching Skills</div>
        <div style="margin-top:10px;">{chips(result.matching_skills, "match")}</div>
      </div>
      <div class="panel">
        <div class="muted">Missing Skills</div>
        <div style="margin-top:10px;">{missing}</div>
      </div>
    </div>

    <div class="row">
      <div class="panel">
        <div class="muted">Strong Points</div>
        <ul>{li(result.strengths)}</ul>
      </div>
      <div class="panel">
        <div class="muted">Areas for Improvement</div>
        <ul>{li(result.weaknesses)}</ul>
      </div>
    </div>

    <div class="panel" style="margin-top:14px;">
      <div class="muted">Action Plan</div>
      <ol>{li(result.recommended_actions)}</ol>
    </div>
  </div>
</body>
</html>
"""
    return html
