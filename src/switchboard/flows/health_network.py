"""Health Network Programme registration flow.

First session: collect names and the professional council registration
number, accept the terms and register the health worker with the directory.
Later sessions: update profile fields or look a number up in the closed user
group (CUG).
"""

from __future__ import annotations

import re

from loguru import logger

from switchboard.config import Settings
from switchboard.directory import Registration
from switchboard.errors import DirectoryError
from switchboard.hookspecs import hookimpl
from switchboard.machine import TurnContext
from switchboard.states import Choice, FreeInputState, InputHandler, MenuState, StateGraph, TerminalState

INITIAL_STATE = "intro"
COUNTRY = "TZ"
NO_REGISTRATION_NUMBER_RE = re.compile(r"[0Oo]")

SMS_SESSION1_ABORT = "If you would like to register at a later date please dial *149*24#."
SMS_SESSION1_END = (
    "Thank you for beginning your registration process. Please dial *149*24# again to complete your"
    " registration in a few easy steps."
)


def build_registration(ctx: TurnContext) -> Registration:
    """Create the directory registration from the answers collected so far."""
    answer = ctx.profile.answer
    registration = Registration(
        phone=ctx.identity,
        firstname=str(answer("fname", "")),
        surname=str(answer("sname", "")),
        country=COUNTRY,
    )
    number = answer("rnumber")
    if number and not NO_REGISTRATION_NUMBER_RE.fullmatch(number):
        registration.registration_number = number
    facility = answer("facility_select")
    if facility:
        registration.facility = facility
    specialty = answer("select_speciality")
    if specialty:
        registration.specialties.append(specialty)
    return registration


async def finish_first_session(ctx: TurnContext) -> str | None:
    try:
        await ctx.directory.register_identity(build_registration(ctx))
    except DirectoryError as exc:
        logger.warning("health_network.registration_failed reason={}", exc.reason)
        return "registration_failed"
    await ctx.metrics.incr_metric("first_session_completed")
    await ctx.notify(SMS_SESSION1_END)
    ctx.profile.set("registered", 1)
    await ctx.metrics.fire_average("sessions_taken_to_register", ctx.profile.get("ussd_sessions", 0))
    return None


async def abort_first_session(ctx: TurnContext) -> None:
    await ctx.notify(SMS_SESSION1_ABORT)


async def complete_profile_update(ctx: TurnContext) -> None:
    if ctx.profile.get("profile_updated"):
        return
    ctx.profile.set("profile_updated", 1)
    await ctx.metrics.incr_metric("second_session_completed")


def update_field(field_name: str) -> InputHandler:
    """Handler sending the typed value to the directory as ``field_name``."""

    async def handler(raw_input: str, ctx: TurnContext) -> str:
        result = await ctx.directory.update_profile_field(ctx.identity, field_name, raw_input)
        if result is None:
            return "invalid_request"
        return "thank_you_update"

    return handler


async def check_number(raw_input: str, ctx: TurnContext) -> str:
    in_cug = await ctx.directory.check_number(raw_input)
    if in_cug is None:
        return "invalid_request"
    return "cug_number_reply_found" if in_cug else "cug_number_reply_not_found"


def build_flow() -> StateGraph:
    yes_no = (Choice("yes", "Yes"), Choice("no", "No"))
    update_targets = ("invalid_request", "thank_you_update")
    return StateGraph.build(
        INITIAL_STATE,
        [
            # Session 1
            MenuState(
                name="intro",
                prompt="Welcome to HNP?\n To register select 1!\n  Kujiandikisha chagua 1",
                choices=(
                    Choice("1", "I want register!\n  Nataka Kujiandikisha"),
                    Choice("2", "Cancel!\n"),
                ),
                next_state={"1": "fname", "2": "cancel"},
            ),
            FreeInputState(
                name="fname",
                prompt="Please enter your first name.\n\nIngiza Jina lako la Kwanza",
                next_state="sname",
            ),
            FreeInputState(
                name="sname",
                prompt="Please enter your surname.\n\nIngiza jina la Ukoo",
                next_state="oname",
            ),
            FreeInputState(
                name="oname",
                prompt="Enter your other name\n\nIngiza majina mengine kama yapo",
                next_state="rnumber",
            ),
            FreeInputState(
                name="rnumber",
                prompt="Enter your professional council reg #.\nIngiza namba ya usajili kwenye baraza",
                next_state="terms_and_conditions",
            ),
            MenuState(
                name="terms_and_conditions",
                prompt=(
                    "Do you agree to the terms and conditions as laid out at http://www.healthnetwork.or.tz ?"
                    " Your local DMO will also have a copy."
                ),
                choices=yes_no,
                next_state={"yes": "session1_end", "no": "session1_abort_yn"},
            ),
            MenuState(
                name="session1_abort_yn",
                prompt=(
                    "We are sorry but you cannot be registered unless you agree to the terms and conditions."
                    " Are you sure you would like to end the registration process?"
                ),
                choices=yes_no,
                next_state={"yes": "session1_abort", "no": "terms_and_conditions"},
            ),
            TerminalState(
                name="session1_abort",
                prompt="If you would like to register at a later date please dial *149*24#.",
                next_state="intro",
                on_enter=abort_first_session,
            ),
            TerminalState(
                name="session1_end",
                prompt=(
                    "Thank you. You have almost completed your registration process. Please dial *149*24#"
                    " again to complete just a few more questions."
                ),
                next_state="update_profile",
                on_enter=finish_first_session,
                targets=("registration_failed",),
            ),
            TerminalState(
                name="registration_failed",
                prompt=(
                    "The system failed to register you at this time. Please dial *149*24# again later.\n\n"
                    "Kuna tatizo la kiufundi kwa sasa. Tafadhali jaribu tena baadaye."
                ),
                next_state="intro",
            ),
            TerminalState(
                name="cancel",
                prompt=(
                    "You can register later by dialling *149*24#!\n\n"
                    "Waweza kujiandikisha baadaye kwa kupiga *149*24#"
                ),
            ),
            # Registered health workers
            MenuState(
                name="update_profile",
                prompt="What do you want to do?!\n\nUnataka kufanya nini?",
                choices=(
                    Choice("1", "Check if number is in CUG!\n  Nataka kutafuta kama namba ipo kwenye CUG"),
                    Choice("2", "Update My Profile!\n  Nataka kuboresha taarifa zangu"),
                ),
                next_state={"1": "enter_number_to_check", "2": "update_profile_menu"},
            ),
            MenuState(
                name="update_profile_menu",
                prompt="Select what you want to update!\n  Chagua taarifa unayotaka kuboresha!",
                choices=(
                    Choice("1", "First name\n  Jina la Kwanza"),
                    Choice("2", "Surname\n  Jina la ukoo (Ubini)"),
                    Choice("3", "Registration Number\n  Namba ya usajili."),
                ),
                next_state={"1": "update_firstname", "2": "update_surname", "3": "update_registration_number"},
                on_invalid="invalid_action_selection",
            ),
            FreeInputState(
                name="update_firstname",
                prompt="Please enter your correct firstname!\n\n  Tafadhali, andika jina lako la kwanza kiusahihi!",
                handler=update_field("firstname"),
                targets=update_targets,
            ),
            FreeInputState(
                name="update_surname",
                prompt="Please enter your correct surname!\n\n  Tafadhali, andika jina lako sahihi la ukoo.",
                handler=update_field("surname"),
                targets=update_targets,
            ),
            FreeInputState(
                name="update_registration_number",
                prompt=(
                    "Please enter your registration/license number!\nThis is the number you get from your"
                    " professional body like MCT, TNMC, etc!"
                ),
                handler=update_field("mct_registration_num"),
                targets=update_targets,
            ),
            TerminalState(
                name="thank_you_update",
                prompt="Thank you for updating your profile!\n\nTunakushukuru kwa kuboresha taarifa zako",
                next_state="update_profile",
                on_enter=complete_profile_update,
            ),
            TerminalState(
                name="invalid_action_selection",
                prompt=(
                    "The choice was not correct! Repeat dialing *149*24#\n\n"
                    "Chaguo lako sio sahihi! Rudia tena kwa kupiga *149*24#"
                ),
                next_state="update_profile",
            ),
            FreeInputState(
                name="enter_number_to_check",
                prompt=(
                    "Please enter the number you want to search in the CUG in the format 07XXXXXXXX\n\n"
                    "Tafadhali, andika hapa namba unayotaka kujua kama ipo kwenye CUG katika mfumo huu 07XXXXXXXX"
                ),
                handler=check_number,
                targets=("invalid_request", "cug_number_reply_found", "cug_number_reply_not_found"),
            ),
            TerminalState(
                name="cug_number_reply_found",
                prompt=(
                    "Thank you! This number is in the CUG! You can call it for free if you are also in the CUG\n\n"
                    "Namba hii ipo katika CUG, unaweza ukaipigia bure kama nawe upo kwenye CUG."
                ),
                next_state="update_profile",
            ),
            TerminalState(
                name="cug_number_reply_not_found",
                prompt=(
                    "Thank you! This number number is not in the CUG! Tell them to register at *149*24#\n\n"
                    "Asante! Namba hii haipo katika CUG, Mtaarifu mwenye namba ajiandikishe kwa kupiga *149*24#."
                ),
                next_state="update_profile",
            ),
            TerminalState(
                name="invalid_request",
                prompt=(
                    "The system failed to query at this time. Try again later\n\n"
                    "Kuna tatizo la kiufundi kwa sasa. Tafadhali jaribu tena baadaye."
                ),
                next_state="update_profile",
            ),
        ],
    )


class HealthNetworkFlow:
    @hookimpl
    def provide_flow(self, settings: Settings) -> StateGraph:
        return build_flow()


plugin = HealthNetworkFlow()
