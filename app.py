import asyncio

from shiny import reactive, render
from shiny.express import input, ui
from shiny.session import get_current_session
from shinywidgets import output_widget, render_plotly

# Import organized modules
from overdose_dashboard.config import (
    DATASET_CATALOG_URL,
    DEFAULT_EXPORT_NAME,
    PAGE_TITLE,
    VALUE_LABEL,
    load_firebase_settings,
)
from overdose_dashboard.data_manager import DatasetLoader, series_frame
from overdose_dashboard.errors import TransactionError
from overdose_dashboard.firestore_store import shared_vote_store
from overdose_dashboard.plotting import create_series_plot
from overdose_dashboard.series import format_number, summarize
from overdose_dashboard.votes import (
    AGAINST,
    FOR,
    VoteState,
    VoteTally,
    log_update_failure,
)

# ======================================================
#  REACTIVE STATE
# ======================================================
session = get_current_session()
loop = asyncio.get_running_loop()

loader = DatasetLoader()
dataset_store = reactive.Value(loader.load())
load_status = reactive.Value(loader.status)
load_error = reactive.Value(loader.error)

tally = VoteTally(shared_vote_store())
vote_counter = reactive.Value(tally.counter)
vote_state = reactive.Value(tally.state)
vote_error = reactive.Value(tally.error)


def _push_tally() -> None:
    # Called from the store's watch thread; hop onto the session loop.
    async def _apply():
        async with reactive.lock():
            vote_counter.set(tally.counter)
            vote_state.set(tally.state)
            vote_error.set(tally.error)
            await reactive.flush()

    future = asyncio.run_coroutine_threadsafe(_apply(), loop)
    future.add_done_callback(log_update_failure)


subscription = tally.subscribe(lambda _counter: _push_tally())
session.on_ended(subscription.cancel)
session.on_ended(loader.cancel)


@reactive.calc
def selected_series():
    dataset = dataset_store.get()
    indicator = input.indicator()
    if dataset is None or not indicator:
        return []
    return dataset.series(indicator)


# ======================================================
#  UI LAYOUT
# ======================================================
ui.page_opts(title=PAGE_TITLE, fillable=False, full_width=True, lang="en")

ui.p(
    "Source: ",
    ui.a(
        "Provisional drug overdose death counts for specific drugs (Data.gov)",
        href=DATASET_CATALOG_URL,
        target="_blank",
        rel="noreferrer",
    ),
)

with ui.sidebar(open="always", position="right"):
    _initial = dataset_store.get()
    ui.input_select(
        "indicator",
        "Drug",
        _initial.indicators if _initial is not None else [],
        selected=_initial.default_indicator if _initial is not None else None,
    )
    ui.input_action_button("reload", "Reload data", class_="btn-primary mt-3")


@reactive.effect
@reactive.event(input.reload)
async def _reload_dataset():
    load_status.set("loading")
    dataset = await asyncio.to_thread(loader.load)
    load_status.set(loader.status)
    load_error.set(loader.error)
    if loader.status == "error":
        dataset_store.set(None)
        ui.update_select("indicator", choices=[])
    elif dataset is not None:
        dataset_store.set(dataset)
        ui.update_select(
            "indicator",
            choices=dataset.indicators,
            selected=dataset.default_indicator,
        )


@render.ui
def load_message():
    status = load_status.get()
    if status == "loading":
        return ui.card(ui.p("Loading CSV…", class_="text-muted"))
    if status == "error":
        return ui.card(
            ui.p(ui.strong("Couldn't load the CSV")),
            ui.pre(load_error.get()),
            ui.p("Make sure the file exists at data/overdoseRates.csv."),
        )
    summary = summarize(selected_series())
    return ui.p(
        "Months: ",
        ui.strong(str(summary.point_count)),
        " · Total: ",
        ui.strong(format_number(summary.grand_total)),
    )


output_widget("series_plot")


@render_plotly
def series_plot():
    points = selected_series()
    return create_series_plot(series_frame(points), input.indicator())


@render.data_frame
def monthly_table():
    df = series_frame(selected_series())
    table = df[["year", "month_name", "total"]].rename(
        columns={"year": "Year", "month_name": "Month", "total": VALUE_LABEL}
    )
    return render.DataGrid(table, height=500)


@render.download(filename=lambda: DEFAULT_EXPORT_NAME)
def download_series():
    yield series_frame(selected_series()).to_csv(index=False)


# ======================================================
#  VOTING
# ======================================================
with ui.card():
    ui.h2("Vote")
    ui.p(
        "This data shows overdose deaths. Drugs are bad, which is why you "
        "should vote Mayer for Mayor."
    )

    @render.ui
    def vote_panel():
        counter = vote_counter.get()
        state = vote_state.get()
        parts = [ui.p("Total votes ever cast: ", ui.strong(str(counter.total)))]
        if state is VoteState.DISABLED:
            missing = ", ".join(load_firebase_settings().missing)
            parts.append(
                ui.p(
                    "Voting isn't configured yet. Add your Firebase settings as "
                    f"environment variables (missing: {missing})."
                )
            )
        elif state is VoteState.LOADING:
            parts.append(ui.p("Loading votes…"))
        elif state is VoteState.ERROR and vote_error.get():
            parts.append(ui.p(ui.strong("Voting error")))
            parts.append(ui.pre(vote_error.get()))
        parts.append(
            ui.layout_columns(
                ui.value_box(
                    "In favor",
                    f"{counter.percent_for:.1f}%",
                    f"{counter.for_count} votes",
                ),
                ui.value_box(
                    "Against",
                    f"{counter.percent_against:.1f}%",
                    f"{counter.against_count} votes",
                ),
            )
        )
        return ui.TagList(*parts)

    with ui.div():
        ui.input_action_button("vote_for", "Vote in favor")
        ui.input_action_button("vote_against", "Vote against")


@reactive.effect
def _sync_vote_buttons():
    state = vote_state.get()
    busy = state in (VoteState.SUBMITTING, VoteState.DISABLED)
    voting = state is VoteState.SUBMITTING
    ui.update_action_button(
        "vote_for", label="Voting…" if voting else "Vote in favor", disabled=busy
    )
    ui.update_action_button(
        "vote_against", label="Voting…" if voting else "Vote against", disabled=busy
    )


async def _submit(direction: str) -> None:
    vote_state.set(VoteState.SUBMITTING)
    try:
        await asyncio.to_thread(tally.cast_vote, direction)
    except TransactionError as exc:
        vote_error.set(str(exc))
    else:
        vote_error.set(tally.error)
    vote_state.set(tally.state)
    vote_counter.set(tally.counter)


@reactive.effect
@reactive.event(input.vote_for)
async def _vote_for():
    await _submit(FOR)


@reactive.effect
@reactive.event(input.vote_against)
async def _vote_against():
    await _submit(AGAINST)
