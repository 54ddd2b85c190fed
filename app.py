import json
import asyncio
import hashlib
import html

import streamlit as st
import streamlit.components.v1 as components
from streamlit_paste_button import paste_image_button

from config import configure_logging, load_settings
from mime_guard import validate_files
from presentation import (
    PLATFORM_LABELS, CopyFeedback, Theme, caption_text, nutrient_breakdown_text,
    nutrient_table, pros_cons_text, score_bars, theme_css,
)
from profile_store import JsonFileStore, ProfileStore
from samples import load_sample_pair
from schemas import ImageSize, ProductInput, ProductRole, UserProfile, Winner
from vision_engine import intake_pasted_image, intake_uploaded_file
from workflow import ComparisonSession, Phase

settings = load_settings()
configure_logging(settings.log_level)

# --- 1. UI CONFIGURATION ---
st.set_page_config(
    page_title="Tale of the Tape",
    page_icon="🥊",
    layout="wide",
)

UPLOAD_TYPES = ["jpg", "jpeg", "png"] + (["webp"] if settings.allow_webp else [])
INPUT_KEYS = ("home_name", "home_notes", "home_price", "comp_name", "comp_notes", "comp_price")


def get_session() -> ComparisonSession:
    if "session" not in st.session_state:
        store = ProfileStore(JsonFileStore(settings.profile_path))
        session = ComparisonSession(store, settings)
        session.start()
        st.session_state.session = session
    return st.session_state.session


def get_copy_feedback() -> CopyFeedback:
    if "copy_feedback" not in st.session_state:
        st.session_state.copy_feedback = CopyFeedback(settings.copy_feedback_seconds)
    return st.session_state.copy_feedback


def release_copy_feedback() -> None:
    feedback = st.session_state.pop("copy_feedback", None)
    if feedback is not None:
        feedback.release()


def write_clipboard(text: str) -> None:
    # Fire-and-forget: the browser may refuse, and there's nothing useful to do about it.
    components.html(
        f"<script>window.parent.navigator.clipboard.writeText({json.dumps(text)}).catch(() => {{}});</script>",
        height=0,
    )


# Re-check "Copied" deadlines on a timer.
COPY_TICK_SECONDS = max(0.25, settings.copy_feedback_seconds / 4)


@st.fragment(run_every=COPY_TICK_SECONDS)
def copy_button(block: str, text: str, label: str = "📋 Copy") -> None:
    feedback = get_copy_feedback()
    if st.button(label, key=f"copy-{block}"):
        write_clipboard(text)
        feedback.mark(block)
    if feedback.is_active(block):
        st.caption("✅ Copied to Clipboard")


# --- 2. SIDEBAR ---
session = get_session()

with st.sidebar:
    st.header("🥊 Tale of the Tape")
    theme_names = [t.value for t in Theme]
    default_theme = Theme.parse(settings.theme).value
    theme = st.selectbox("Theme", theme_names, index=theme_names.index(default_theme))
    if session.profile:
        st.caption(f"Signed in as **{session.profile.name}**")
        if st.button("⚙️ Profile Settings", disabled=session.busy):
            session.open_profile()
            st.rerun()
        if st.button("🚪 Log out", disabled=session.busy):
            session.logout()
            release_copy_feedback()
            st.rerun()

st.markdown(theme_css(theme), unsafe_allow_html=True)


# --- 3. SCREENS ---

def render_profile() -> None:
    st.title("Coach Profile")
    st.caption("Your name and link personalize every post and graphic.")
    if session.error:
        st.error(session.error)

    current = session.profile
    with st.form("profile_form"):
        name = st.text_input("Your Name", value=current.name if current else "")
        link = st.text_input("Evaluation Link", value=current.evaluation_link if current else "")
        cta = st.text_input("Call to Action", value=current.cta_preference if current else "Book a free discovery call")
        api_key = st.text_input(
            "API Key (optional if the server has one)",
            value=current.api_key if current else "",
            type="password",
        )
        saved = st.form_submit_button("Save Profile")

    if saved:
        if not name.strip():
            st.warning("Please enter your name.")
            return
        profile = UserProfile(name=name, evaluation_link=link, cta_preference=cta, api_key=api_key)
        problem = session.save_profile(profile)
        if problem:
            st.error(problem)
            return
        st.rerun()


def _prefill_inputs() -> None:
    """Put a remembered draft (sample pair, or inputs from a failed run) back into the form."""
    home, comp = session.home, session.competitor
    if home is None or comp is None or "home_name" in st.session_state:
        return
    st.session_state.home_name = home.name
    st.session_state.home_notes = home.notes
    st.session_state.home_price = home.price
    st.session_state.comp_name = comp.name
    st.session_state.comp_notes = comp.notes
    st.session_state.comp_price = comp.price


def _clear_inputs() -> None:
    for key in INPUT_KEYS:
        st.session_state.pop(key, None)
    for key in [k for k in st.session_state if str(k).startswith("pasted-")]:
        del st.session_state[key]


def _take_image(uploaded, fallback, label: str):
    """Use a fresh upload if there is one, otherwise keep the draft image."""
    if uploaded is None:
        return fallback
    valid, problems = validate_files([uploaded], settings.allow_webp)
    for problem in problems:
        st.warning(f"{label}: {problem}")
    if not valid:
        return fallback
    return intake_uploaded_file(valid[0], settings)


def _image_slot(role: ProductRole, slot: str, title: str) -> None:
    """Paste target plus preview/remove for one kept image (pasted or from the sample pair)."""
    key = f"{role.value}-{slot}"
    pasted = paste_image_button(f"📋 Paste {title}", key=f"paste-{key}", errors="ignore")
    if pasted.image_data is not None:
        # The component keeps returning the last paste on every rerun; apply each one once.
        token = hashlib.sha1(pasted.image_data.tobytes()).hexdigest()
        if st.session_state.get(f"pasted-{key}") != token:
            st.session_state[f"pasted-{key}"] = token
            session.set_image(role, slot, intake_pasted_image(pasted.image_data, settings))
            st.rerun()

    draft = session.home if role == ProductRole.HOME else session.competitor
    image = getattr(draft, slot) if draft is not None else None
    if image is not None:
        st.image(image.raw_bytes(), caption=f"{title} (kept)", width=120)
        if st.button("✖ Remove", key=f"remove-{key}", disabled=session.busy):
            session.set_image(role, slot, None)
            st.rerun()


def _kept_images(role: ProductRole) -> None:
    _image_slot(role, "front_image", "Product Shot")
    _image_slot(role, "label_image", "Label")


def _product_column(prefix: str, title: str):
    st.subheader(title)
    st.text_input("Product Name", key=f"{prefix}_name")
    if prefix == "comp":
        st.text_input("Price", key=f"{prefix}_price", placeholder="$12.50")
    front = st.file_uploader("Product Shot", type=UPLOAD_TYPES, key=f"{prefix}_front")
    label = st.file_uploader("Ingredients / Nutrition Label", type=UPLOAD_TYPES, key=f"{prefix}_label")
    placeholder = "Key Benefits..." if prefix == "home" else "Weaknesses..."
    st.text_area("Notes", key=f"{prefix}_notes", placeholder=placeholder)
    return front, label


def render_input() -> None:
    st.title("Health Product Analysis")
    st.caption("Upload photos of both product labels for an expert breakdown.")
    if session.error:
        st.error(session.error)

    if st.button("✨ Load Sample Pair", disabled=session.busy):
        with st.spinner("Loading..."):
            home, comp = asyncio.run(load_sample_pair(settings))
        session.set_draft(home, comp)
        _clear_inputs()
        st.rerun()

    if session.needs_key:
        st.warning("No API key configured yet. Add one in Profile Settings before comparing.")

    _prefill_inputs()

    # Uploads inside the form replace these on submit.
    paste_home, paste_comp = st.columns(2)
    with paste_home:
        _kept_images(ProductRole.HOME)
    with paste_comp:
        _kept_images(ProductRole.COMPETITOR)

    with st.form("compare_form"):
        col_home, col_comp = st.columns(2)
        with col_home:
            home_front, home_label = _product_column("home", "🟢 Your Product")
        with col_comp:
            comp_front, comp_label = _product_column("comp", "🔴 Competitor")
        submitted = st.form_submit_button("🥊 Compare & Analyze", disabled=session.busy)

    if not submitted:
        return

    draft_home, draft_comp = session.home, session.competitor
    home = ProductInput(
        name=st.session_state.get("home_name", ""),
        front_image=_take_image(home_front, draft_home.front_image if draft_home else None, "Home product shot"),
        label_image=_take_image(home_label, draft_home.label_image if draft_home else None, "Home label"),
        notes=st.session_state.get("home_notes", ""),
        price=st.session_state.get("home_price", ""),
        role=ProductRole.HOME,
    )
    competitor = ProductInput(
        name=st.session_state.get("comp_name", ""),
        front_image=_take_image(comp_front, draft_comp.front_image if draft_comp else None, "Competitor product shot"),
        label_image=_take_image(comp_label, draft_comp.label_image if draft_comp else None, "Competitor label"),
        notes=st.session_state.get("comp_notes", ""),
        price=st.session_state.get("comp_price", ""),
        role=ProductRole.COMPETITOR,
    )

    with st.status("Analyzing Products...", expanded=True) as status:
        st.write("📸 Reading labels and verifying nutritional bio-availability...")
        phase = session.submit(home, competitor)
        if phase == Phase.RESULTS:
            status.update(label="Analysis Complete", state="complete")
        else:
            status.update(label="Analysis Failed", state="error")
    st.rerun()


def render_image_panel() -> None:
    st.subheader("🖼️ Marketing Asset Generator")
    st.caption('Create a "Tale of the Tape" visual for social media.')

    sizes = [s.value for s in ImageSize]
    size = st.radio("Resolution", sizes, horizontal=True, key="image_size")
    if st.button("Generate Graphic", key="generate_image", disabled=session.busy):
        with st.spinner("Rendering your graphic..."):
            session.generate_image(ImageSize(size))

    if session.generation_error:
        st.error(session.generation_error)
        if session.generation_needs_key and st.button("Update Settings", key="image_update_key"):
            session.open_profile()
            st.rerun()

    generated = session.generated_image
    if generated is not None:
        raw = generated.image.raw_bytes()
        st.image(raw, caption=f"Tale of the Tape ({generated.size.value})")
        extension = generated.image.mime_type.split("/")[-1]
        st.download_button(
            "⬇️ Download",
            data=raw,
            file_name=f"tale-of-the-tape.{extension}",
            mime=generated.image.mime_type,
        )


def render_results() -> None:
    result = session.result
    home, comp = session.home, session.competitor
    winner_name = home.name if result.winner == Winner.HOME else comp.name

    # --- VERDICT ---
    st.markdown(
        f'<div class="tape-card"><span class="tape-winner">🏆 WINNER: {html.escape(winner_name)}</span>'
        f"<h2>{html.escape(result.verdict)}</h2><p>{html.escape(result.summary)}</p></div>",
        unsafe_allow_html=True,
    )
    copy_button("verdict", f"{result.verdict}\n\n{result.summary}")

    c1, c2 = st.columns(2)
    with c1:
        st.markdown(f'### <span class="tape-home">Why {html.escape(home.name)} wins</span>', unsafe_allow_html=True)
        for pro in result.pros:
            st.write(f"✅ {pro}")
    with c2:
        st.markdown("### Watch-outs")
        for con in result.cons:
            st.write(f"⚠️ {con}")
    copy_button("pros_cons", pros_cons_text(result))

    # --- SCORES & NUTRIENTS ---
    st.divider()
    s1, s2 = st.columns([1, 2])
    with s1:
        st.markdown("### 📊 Quality Score")
        for bar in score_bars(result, home.name, comp.name):
            crown = " 🏆" if bar.is_winner else ""
            st.progress(bar.fraction, text=f"{bar.label}: {bar.score:.0f}/100{crown}")
    with s2:
        st.markdown("### 🧪 Nutrient Breakdown")
        rows = nutrient_table(result, home.name, comp.name)
        if rows:
            st.table(rows)
        else:
            st.info("No nutrient rows returned.")
        copy_button("nutrients", nutrient_breakdown_text(result, home.name, comp.name))

    # --- SOCIAL COPY ---
    st.divider()
    st.markdown("### 📢 Ready-to-Post Copy")
    platforms = [p for p, _ in result.social_copy.platforms()]
    tabs = st.tabs([PLATFORM_LABELS[p] for p in platforms])
    for tab, platform in zip(tabs, platforms):
        with tab:
            text = caption_text(result, platform)
            st.markdown(f'<div class="tape-card">{html.escape(text)}</div>', unsafe_allow_html=True)
            copy_button(f"social-{platform}", text, label="📋 Copy Text")

    # --- IMAGE ---
    st.divider()
    render_image_panel()

    st.divider()
    if st.button("🔄 New Comparison", disabled=session.busy):
        session.reset()
        release_copy_feedback()
        _clear_inputs()
        st.rerun()


# --- 4. APP LOGIC ---
if session.phase == Phase.ONBOARDING:
    render_profile()
elif session.phase == Phase.RESULTS and session.result is not None:
    render_results()
else:
    render_input()
