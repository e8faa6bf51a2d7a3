"""Streamlit UI for exam strategy generation.

Run with: streamlit run ui/app.py
"""

# Add project root to sys.path for imports to work when run via streamlit
import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import streamlit as st  # noqa: E402

from backend.app.config import get_settings  # noqa: E402
from backend.app.errors import JobNotFoundError, PollTimeoutError  # noqa: E402
from ui.helpers import (  # noqa: E402
    STAGE_LABELS,
    compose_progress,
    create_strategy_job,
    poll_strategy_job,
    stream_study_answer,
)

settings = get_settings()
BACKEND_URL = settings.backend_url

# Upload happens before the job exists; it owns the first part of the bar.
UPLOAD_DONE_PROGRESS = 30

st.set_page_config(page_title="Exam Strategy", page_icon="📚", layout="wide")

if "job" not in st.session_state:
    st.session_state.job = None
if "error" not in st.session_state:
    st.session_state.error = None
if "strategy_id" not in st.session_state:
    st.session_state.strategy_id = None


def _file_refs(raw: str, category: str) -> list[dict[str, str]]:
    """One file reference per "name | url" line."""
    refs = []
    for line in raw.splitlines():
        if "|" not in line:
            continue
        name, url = (part.strip() for part in line.split("|", 1))
        if name and url:
            refs.append({"name": name, "url": url, "category": category})
    return refs


st.title("📚 Exam Strategy")
st.markdown("*Upload your syllabus and notes, get a chapter-wise revision plan.*")
st.divider()

col_left, col_right = st.columns([1, 2])

# =============================================================================
# LEFT COLUMN - REQUEST FORM
# =============================================================================
with col_left:
    st.subheader("Inputs")

    with st.form("strategy_form"):
        hours_left = st.number_input("Hours left *", min_value=0.5, value=12.0, step=0.5)
        syllabus_raw = st.text_area("Syllabus files (name | url per line)")
        syllabus_text = st.text_area("Or paste syllabus text")
        material_raw = st.text_area("Study material files (name | url per line) *")
        papers_raw = st.text_area("Previous papers (name | url per line)")

        model_type = st.radio("Model", options=["primary", "custom"], horizontal=True)
        custom_base_url = st.text_input("Custom base URL")
        custom_api_key = st.text_input("Custom API key", type="password")
        custom_model_name = st.text_input("Custom model name")

        submitted = st.form_submit_button("Generate strategy", type="primary")

    if submitted:
        payload = {
            "hours_left": hours_left,
            "syllabus_files": _file_refs(syllabus_raw, "syllabus"),
            "syllabus_text_input": syllabus_text or None,
            "study_material_files": _file_refs(material_raw, "studyMaterial"),
            "previous_paper_files": _file_refs(papers_raw, "previousPapers"),
            "model_type": model_type,
        }
        if model_type == "custom":
            payload["custom_model"] = {
                "base_url": custom_base_url,
                "api_key": custom_api_key,
                "model_name": custom_model_name,
            }

        progress_bar = st.progress(compose_progress(UPLOAD_DONE_PROGRESS, 0))
        stage_text = st.empty()

        def _show(job: dict) -> None:
            progress = compose_progress(UPLOAD_DONE_PROGRESS, job["progress"])
            progress_bar.progress(progress)
            stage_text.caption(STAGE_LABELS.get(job["stage"], job["stage"]))

        try:
            created = create_strategy_job(BACKEND_URL, payload)
            st.session_state.job = poll_strategy_job(
                BACKEND_URL,
                created["job_id"],
                max_attempts=settings.poll_max_attempts,
                interval_seconds=settings.poll_interval_seconds,
                on_update=_show,
            )
            st.session_state.strategy_id = created["job_id"]
            st.session_state.error = st.session_state.job.get("error")
        except (JobNotFoundError, PollTimeoutError) as e:
            st.session_state.error = str(e)
        except Exception as e:
            st.session_state.error = f"Request failed: {e}"

    if st.session_state.error:
        st.error(st.session_state.error)

# =============================================================================
# RIGHT COLUMN - STRATEGY + STUDY CHAT
# =============================================================================
with col_right:
    st.subheader("Strategy")
    job = st.session_state.job
    strategy = job.get("strategy") if job else None

    if strategy:
        summary = strategy.get("strategy_summary", {})
        st.caption(
            f"{summary.get('hours_left')} hours left · coverage "
            f"{summary.get('estimated_coverage')} · model {strategy.get('model_used')}"
        )

        for chapter in strategy.get("chapters", []):
            likelihood = chapter.get("exam_likelihood_summary", {})
            title = (
                f"Chapter {chapter['chapter_number']}: {chapter['chapter_title']} "
                f"({chapter['priority']}, {chapter['estimated_time']})"
            )
            with st.expander(title):
                if chapter.get("material_warning"):
                    st.warning(chapter["material_warning"])
                st.caption(f"Exam likelihood {likelihood.get('average_likelihood', 0)}")
                for topic in chapter.get("topics", []):
                    st.markdown(f"- **{topic['title']}** ({topic['priority']})")

        st.divider()
        st.subheader("Ask about your material")
        question = st.text_input("Question")
        if st.button("Ask") and question.strip():
            answer_box = st.empty()
            answer = ""
            for event in stream_study_answer(BACKEND_URL, st.session_state.strategy_id, question):
                if event["event"] == "delta":
                    answer += event.get("text", "")
                    answer_box.markdown(answer)
                elif event["event"] == "done":
                    answer_box.markdown(event.get("answer", answer))
                    for source in event.get("sources", []):
                        st.caption(f"{source['source_name']} · {source['section']}")
                elif event["event"] == "error":
                    st.error(event.get("error", "Generation failed"))
    else:
        st.info("👈 Fill out the form to generate a strategy.")
