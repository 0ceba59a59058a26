"""CSS for the management pages: fixed sidebar, record cards and touch-friendly controls."""
import streamlit as st


def apply_mobile_styles():
    """Inject the app stylesheet once per run."""
    st.markdown("""
    <style>
    section[data-testid="stSidebar"] {
        width: 17rem !important;
        min-width: 17rem !important;
    }

    /* Metric cards above each list */
    div[data-testid="stMetric"] {
        background: rgba(128, 128, 128, 0.08);
        border-radius: 0.5rem;
        padding: 0.6rem 0.9rem;
    }

    /* Card view */
    div[data-testid="stVerticalBlockBorderWrapper"] p {
        margin-bottom: 0.2rem;
    }

    /* Pagination buttons stay on one line */
    div[data-testid="stHorizontalBlock"] .stButton button {
        white-space: nowrap;
    }

    @media (max-width: 768px) {
        .stButton button {
            min-height: 44px !important;
            font-size: 16px !important;
        }

        .block-container {
            padding-left: 1rem !important;
            padding-right: 1rem !important;
        }

        /* Prevent zoom on iOS */
        input, select, textarea {
            font-size: 16px !important;
        }

        div[data-testid="stMetric"] {
            padding: 0.4rem 0.6rem;
        }
    }
    </style>
    """, unsafe_allow_html=True)
