"""Turn Resolver: the per-scene state machine.

``TurnResolver`` owns every mutation of a :class:`~chronicle_server.game.session.Scene`.
It sequences the decision pipeline for one turn and is the only caller of
the oracle for outcomes, of the media pipeline, and of the store's ``save``.

Turn pipeline
-------------
::

    resolve_turn(scene_id, player_actions, opponent_actions=None)
        │
        ├─ 0. Acquire the scene lock, load, reject if game over, copy.
        ├─ 1. Budget check for the player (and a supplied opponent).
        ├─ 2. Combat without opponent actions → OpponentPlanner, then
        │     the same budget check.
        ├─ 3. Outcome oracle call (sandbox: continuation; combat: duel).
        ├─ 4. HP deltas, clamped into [0, max_hp].
        ├─ 5. New status effects, then exactly one ledger tick.
        ├─ 6. Memory Window summary; actions + narration into history.
        ├─ 7. Transitions (combat start / combat end / game over), with
        │     a concluding narration beat when a fight is decided.
        ├─ 8. Media Pipeline on the final narration (never fails the turn).
        └─ 9. Persist.

All-or-nothing
--------------
Steps 1–8 operate on a private copy of the stored scene.  Any exception
before step 9 leaves the store untouched.  If step 9 itself fails the copy
is discarded and :class:`PersistenceFailure` is raised; the stored state is
still the previous committed one.

Concurrency
-----------
Turns on the same scene are serialised by a per-scene ``asyncio.Lock`` held
from load to save.  Turns on different scenes run concurrently.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from chronicle_server.game.cost import ActionCostAssessor
from chronicle_server.game.effects import OPPONENT, PLAYER, StatusEffect
from chronicle_server.game.errors import (
    BudgetExceeded,
    GameAlreadyOver,
    OracleFailure,
    PersistenceFailure,
    TranscriptionFailure,
    UnknownPersona,
)
from chronicle_server.game.memory import MemoryWindow
from chronicle_server.game.opponent import OpponentPlanner
from chronicle_server.game.personas import Persona, PersonaRegistry
from chronicle_server.game.session import Mode, Participant, Scene
from chronicle_server.media import MediaArtifacts, StyleContext, build_media
from chronicle_server.oracle import prompts
from chronicle_server.oracle.client import OracleClient
from chronicle_server.oracle.schemas import DuelOutcome, NarrationReply, NarrativeOutcome, decode
from chronicle_server.store.errors import StoreError
from chronicle_server.store.scene_store import SqliteSceneStore

logger = logging.getLogger(__name__)

DRAW = "draw"

# Memory entries quote at most this much of a sandbox narration.
_MEMORY_NARRATION_CHARS = 150


@dataclass
class TurnResult:
    """Everything a caller needs to present one resolved turn.

    Attributes:
        scene:            The committed scene after the turn.
        narration:        Final narration (turn narration, followed by the
                          concluding beat when a fight was decided).
        turn_summary:     Oracle's one-line summary, when provided.
        player_actions / opponent_actions:
                          The actions that were resolved (opponent actions
                          may have been synthesised).
        player_costs / opponent_costs:
                          Assessed cost per action, in order.
        expired_effects:  Effects removed by this turn's tick.
        combat_started:   The director opened a combat encounter.
        combat_ended:     A sandbox combat encounter was decided and closed.
        combat_winner:    Winner of the encounter that just closed.
        media:            Image/audio artifacts (fields may be ``None``).
        transcript:       Transcribed player input for voice turns.
    """

    scene: Scene
    narration: str
    turn_summary: str | None = None
    player_actions: list[str] = field(default_factory=list)
    opponent_actions: list[str] = field(default_factory=list)
    player_costs: list[int] = field(default_factory=list)
    opponent_costs: list[int] = field(default_factory=list)
    expired_effects: list[StatusEffect] = field(default_factory=list)
    combat_started: bool = False
    combat_ended: bool = False
    combat_winner: str | None = None
    media: MediaArtifacts = field(default_factory=MediaArtifacts)
    transcript: str | None = None


@dataclass
class _Resolution:
    """Intermediate outcome of steps 3–7, before media and persistence."""

    narration: str
    turn_summary: str | None = None
    image_prompt: str | None = None
    expired: list[StatusEffect] = field(default_factory=list)
    combat_started: bool = False
    combat_ended: bool = False
    combat_winner: str | None = None


def _normalise_actions(actions) -> list[str]:
    """Accept a string or a list of strings; drop blank entries."""
    if actions is None:
        return []
    if isinstance(actions, str):
        actions = [actions]
    return [a.strip() for a in actions if a and a.strip()]


def _decide_winner(scene: Scene) -> str:
    """Winner once a fight is over; mutual defeat and equal HP are a draw."""
    player_down = scene.player.defeated
    opponent_down = scene.opponent is None or scene.opponent.defeated
    if player_down and opponent_down:
        return DRAW
    if opponent_down:
        return PLAYER
    if player_down:
        return OPPONENT
    if scene.player_hp == scene.opponent_hp:
        return DRAW
    return PLAYER if scene.player_hp > scene.opponent_hp else OPPONENT


def _final_reason(scene: Scene, winner: str) -> str:
    player, opponent = scene.player.name, scene.opponent_name
    if winner == PLAYER:
        return f"{opponent} was vanquished by {player} in round {scene.round}."
    if winner == OPPONENT:
        return f"{player} ran out of resilience against {opponent} in round {scene.round}."
    return f"{player} and {opponent} fell together in round {scene.round}; the duel is a draw."


class TurnResolver:
    """Resolve turns for stored scenes.

    Args:
        store:       Scene Store (``save`` / ``load`` / ``list_scenes``).
        oracle:      Oracle client for outcome and narration calls.
        assessor:    Action cost assessor for budget checks.
        planner:     Autonomous opponent planner.
        media:       Media pipeline.
        personas:    Director persona registry.
        rules:       :class:`~chronicle_server.config.RuleSettings`.
        transcriber: Voice input transcriber, or ``None``.
        default_persona: Persona used when a session names none.
    """

    def __init__(
        self,
        *,
        store,
        oracle,
        assessor: ActionCostAssessor,
        planner: OpponentPlanner,
        media,
        personas: PersonaRegistry,
        rules,
        transcriber=None,
        default_persona: str = "grand_tactician",
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._assessor = assessor
        self._planner = planner
        self._media = media
        self._personas = personas
        self._rules = rules
        self._transcriber = transcriber
        self._default_persona = default_persona

        # Per-scene lock pool.  Serialises the load-resolve-save cycle.
        # Entries live only while a turn holds or waits on them.
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @classmethod
    def from_config(cls, cfg) -> TurnResolver:
        """Wire the full pipeline from a :class:`~chronicle_server.config.ServerConfig`."""
        oracle = OracleClient.from_config(cfg.oracle)
        assessor = ActionCostAssessor(
            oracle,
            min_cost=cfg.rules.min_action_cost,
            max_cost=cfg.rules.max_action_cost,
        )
        planner = OpponentPlanner(
            oracle,
            assessor,
            budget=cfg.rules.action_budget,
            max_tool_rounds=cfg.oracle.max_tool_rounds,
        )
        media, transcriber = build_media(oracle, cfg.media)
        return cls(
            store=SqliteSceneStore.from_config(cfg.store),
            oracle=oracle,
            assessor=assessor,
            planner=planner,
            media=media,
            personas=PersonaRegistry.from_config(cfg.personas),
            rules=cfg.rules,
            transcriber=transcriber,
            default_persona=cfg.personas.default_persona,
        )

    @property
    def personas(self) -> PersonaRegistry:
        return self._personas

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start_session(
        self,
        *,
        player_name: str,
        setting: str = "",
        player_opening: str = "",
        opponent_name: str | None = None,
        opponent_opening: str = "",
        persona_id: str | None = None,
        art_style: str = "",
        player_visuals: str = "",
        opponent_visuals: str = "",
        director_may_initiate_combat: bool | None = None,
    ) -> TurnResult:
        """Create a scene, narrate its opening, and persist it.

        A scene with an opponent name is competitive; without one it is a
        sandbox scene.

        Raises:
            UnknownPersona:     ``persona_id`` is not loaded.
            OracleFailure:      The opening narration could not be produced.
            PersistenceFailure: The new scene could not be stored.
        """
        persona = self._personas.get(persona_id or self._default_persona)
        player_name = player_name.strip()
        if not player_name:
            raise ValueError("A scene needs a player name.")
        opponent_name = (opponent_name or "").strip() or None
        starting_hp = self._rules.starting_hp

        if opponent_name:
            mode = Mode.COMPETITIVE
            player = Participant(player_name, hp=starting_hp, max_hp=starting_hp)
            opponent = Participant(opponent_name, hp=starting_hp, max_hp=starting_hp)
        else:
            mode = Mode.SANDBOX
            player = Participant(player_name)
            opponent = None

        if director_may_initiate_combat is None:
            director_may_initiate_combat = self._rules.director_may_initiate_combat

        scene = Scene(
            scene_id=Scene.new_id(),
            mode=mode,
            player=player,
            opponent=opponent,
            memory=MemoryWindow(capacity=self._rules.memory_capacity),
            persona_id=persona.persona_id,
            setting=setting,
            art_style=art_style,
            player_visuals=player_visuals,
            opponent_visuals=opponent_visuals,
            director_may_initiate_combat=director_may_initiate_combat,
        )

        raw = await self._oracle.complete(
            system=persona.system_prompt,
            prompt=prompts.opening_prompt(
                setting=setting,
                player_name=player_name,
                player_opening=player_opening,
                opponent_name=opponent_name,
                opponent_opening=opponent_opening,
            ),
            model=persona.model,
        )
        narration = decode(NarrationReply, raw).narration
        scene.history.append({"role": "assistant", "content": narration, "speaker": "director"})

        media = await self._render_media(scene, persona, narration)
        await self._persist(scene)
        logger.info("Started %s scene %s with director %s", mode.value, scene.scene_id, persona.persona_id)
        return TurnResult(scene=scene, narration=narration, media=media)

    async def get_scene(self, scene_id: str) -> Scene:
        """Return the committed state of a scene."""
        return await self._load(scene_id)

    async def list_scenes(self):
        try:
            return await self._store.list_scenes()
        except StoreError as exc:
            logger.error("Listing scenes failed: %s", exc)
            raise PersistenceFailure("Saved scenes could not be listed.") from exc

    async def resolve_turn(self, scene_id: str, player_actions, opponent_actions=None) -> TurnResult:
        """Resolve one turn for ``scene_id``.

        Args:
            scene_id:         Target scene.
            player_actions:   One action string or a list of them.
            opponent_actions: Optional opponent actions (combat modes only);
                              synthesised when omitted.

        Raises:
            ValueError:         No non-blank player action.
            SessionNotFound:    Unknown scene.
            GameAlreadyOver:    The competitive scene has concluded.
            BudgetExceeded:     A side's summed cost is over budget.
            OracleFailure:      Planner, outcome or concluding call failed
                                (``OracleMalformed`` on schema violations).
            PersistenceFailure: The resolved scene could not be stored.
        """
        actions = _normalise_actions(player_actions)
        if not actions:
            raise ValueError("At least one non-empty player action is required.")

        async with self._scene_lock(scene_id):
            stored = await self._load(scene_id)
            if stored.game_over:
                raise GameAlreadyOver(scene_id)

            try:
                result = await self._run_turn(stored, actions, _normalise_actions(opponent_actions))
            except OracleFailure as exc:
                logger.error("Turn aborted for scene %s: %s", scene_id, exc)
                raise
            await self._persist(result.scene)

        logger.info(
            "Resolved turn for scene %s (mode=%s, round=%d, hp=%d/%d)",
            scene_id,
            result.scene.mode.value,
            result.scene.round,
            result.scene.player_hp,
            result.scene.opponent_hp,
        )
        return result

    async def resolve_voice_turn(
        self,
        scene_id: str,
        audio: bytes,
        *,
        filename: str = "audio.webm",
        opponent_actions=None,
    ) -> TurnResult:
        """Transcribe ``audio`` and resolve it as the player's action.

        The scene is checked before transcription so an unknown or concluded
        scene never costs a transcription call.

        Raises:
            TranscriptionFailure: No transcriber or no usable transcript.
            plus everything :meth:`resolve_turn` raises.
        """
        scene = await self._load(scene_id)
        if scene.game_over:
            raise GameAlreadyOver(scene_id)
        if self._transcriber is None:
            raise TranscriptionFailure("No transcriber is configured.")

        transcript = await self._transcriber.transcribe(audio, filename=filename)
        logger.debug("Transcribed voice turn for scene %s: %.80s", scene_id, transcript)
        result = await self.resolve_turn(scene_id, [transcript], opponent_actions)
        result.transcript = transcript
        return result

    # ------------------------------------------------------------------
    # Turn pipeline
    # ------------------------------------------------------------------

    async def _run_turn(self, stored: Scene, player_actions: list[str], opponent_actions: list[str]) -> TurnResult:
        """Steps 1–8 on a private copy of ``stored``."""
        persona = self._persona_for(stored)
        scene = stored.copy()

        # 1. Player budget
        player_costs = await self._check_budget(PLAYER, player_actions)

        # 2. Opponent actions (combat only)
        opponent_costs: list[int] = []
        if scene.mode.is_combat:
            if not opponent_actions:
                opponent_actions = await self._planner.plan(scene, model=persona.model)
            opponent_costs = await self._check_budget(OPPONENT, opponent_actions)
        elif opponent_actions:
            logger.debug("Ignoring opponent actions submitted to sandbox scene %s", scene.scene_id)
            opponent_actions = []

        # 3–7. Outcome, deltas, effects, memory, transitions
        if scene.mode.is_combat:
            resolution = await self._resolve_duel(scene, persona, player_actions, opponent_actions)
        else:
            resolution = await self._resolve_sandbox(scene, persona, player_actions)

        # 8. Media
        media = await self._render_media(scene, persona, resolution.narration, resolution.image_prompt)

        scene.touch()
        return TurnResult(
            scene=scene,
            narration=resolution.narration,
            turn_summary=resolution.turn_summary,
            player_actions=player_actions,
            opponent_actions=opponent_actions,
            player_costs=player_costs,
            opponent_costs=opponent_costs,
            expired_effects=resolution.expired,
            combat_started=resolution.combat_started,
            combat_ended=resolution.combat_ended,
            combat_winner=resolution.combat_winner,
            media=media,
        )

    async def _check_budget(self, side: str, actions: list[str]) -> list[int]:
        costs = await self._assessor.assess_many(actions)
        total = sum(costs)
        if total > self._rules.action_budget:
            logger.info("%s actions over budget (%d > %d)", side, total, self._rules.action_budget)
            raise BudgetExceeded(side=side, cost=total, budget=self._rules.action_budget, costs=costs)
        return costs

    async def _resolve_sandbox(self, scene: Scene, persona: Persona, actions: list[str]) -> _Resolution:
        allow_combat = scene.director_may_initiate_combat
        raw = await self._oracle.complete(
            system=persona.system_prompt,
            prompt=prompts.sandbox_prompt(scene, actions, allow_combat=allow_combat),
            history=scene.trailing_history(self._rules.history_window),
            model=persona.model,
        )
        outcome = decode(NarrativeOutcome, raw)

        # 5. Only the player exists outside combat.
        effects = [StatusEffect(e.name, e.duration, e.target) for e in outcome.new_effects if e.target == PLAYER]
        scene.effects.apply(effects)
        expired = scene.effects.tick()

        # 6. Memory and history
        joined = "; ".join(actions)
        summary = outcome.turn_summary
        if not summary:
            summary = outcome.narration[:_MEMORY_NARRATION_CHARS]
            if len(outcome.narration) > _MEMORY_NARRATION_CHARS:
                summary += "..."
        scene.memory.push(f'I took the action "{joined}", and the outcome was: "{summary}"')
        scene.history.append(
            {"role": "user", "content": f'{scene.player.name.upper()} ACTION: "{joined}"', "speaker": PLAYER}
        )
        scene.history.append({"role": "assistant", "content": outcome.narration, "speaker": "director"})

        # 7. Director-initiated combat
        resolution = _Resolution(
            narration=outcome.narration,
            turn_summary=outcome.turn_summary,
            image_prompt=outcome.image_prompt,
            expired=expired,
        )
        if outcome.initiate_combat:
            descriptor = (outcome.opponent_descriptor or "").strip()
            if not allow_combat:
                logger.info("Director tried to start combat in scene %s; not allowed", scene.scene_id)
            elif not descriptor or not outcome.opponent_hp or outcome.opponent_hp <= 0:
                logger.warning(
                    "Ignoring incomplete combat initiation in scene %s (descriptor=%r, hp=%r)",
                    scene.scene_id,
                    descriptor,
                    outcome.opponent_hp,
                )
            else:
                self._start_combat(scene, descriptor, outcome.opponent_hp)
                resolution.combat_started = True
        return resolution

    async def _resolve_duel(
        self,
        scene: Scene,
        persona: Persona,
        player_actions: list[str],
        opponent_actions: list[str],
    ) -> _Resolution:
        scene.round += 1
        raw = await self._oracle.complete(
            system=persona.system_prompt,
            prompt=prompts.duel_prompt(scene, player_actions, opponent_actions),
            history=scene.trailing_history(self._rules.history_window),
            model=persona.model,
        )
        outcome = decode(DuelOutcome, raw)

        # 4. HP
        scene.player.apply_delta(outcome.hp_delta_player)
        scene.opponent.apply_delta(outcome.hp_delta_opponent)

        # 5. Effects, then exactly one tick
        scene.effects.apply([StatusEffect(e.name, e.duration, e.target) for e in outcome.new_effects])
        expired = scene.effects.tick()

        # 6. Memory and history
        player_joined = "; ".join(player_actions)
        opponent_joined = "; ".join(opponent_actions)
        summary = outcome.turn_summary or outcome.narration[:_MEMORY_NARRATION_CHARS]
        scene.memory.push(
            f'[Turn Outcome] {scene.player.name} did "{player_joined}" and '
            f'{scene.opponent_name} did "{opponent_joined}", resulting in: {summary}'
        )
        scene.history.append(
            {
                "role": "user",
                "content": f'{scene.player.name.upper()} ACTIONS: "{player_joined}"',
                "speaker": PLAYER,
            }
        )
        scene.history.append(
            {
                "role": "user",
                "content": f'{scene.opponent_name.upper()} ACTIONS: "{opponent_joined}"',
                "speaker": OPPONENT,
            }
        )
        scene.history.append({"role": "assistant", "content": outcome.narration, "speaker": "director"})

        resolution = _Resolution(
            narration=outcome.narration,
            turn_summary=outcome.turn_summary,
            image_prompt=outcome.image_prompt,
            expired=expired,
        )

        # 7. Transitions
        decided = scene.player.defeated or scene.opponent.defeated
        conceded = scene.mode is Mode.COMPETITIVE and outcome.game_over
        if not (decided or conceded):
            return resolution

        winner = _decide_winner(scene)
        concluding = await self._conclude(scene, persona, winner)
        scene.history.append({"role": "assistant", "content": concluding, "speaker": "director"})
        resolution.narration = f"{outcome.narration}\n\n{concluding}"
        resolution.image_prompt = None

        if scene.mode is Mode.COMPETITIVE:
            scene.game_over = True
            scene.winner = winner
            scene.final_reason = _final_reason(scene, winner)
            logger.info("Scene %s concluded: %s", scene.scene_id, scene.final_reason)
        else:
            resolution.combat_ended = True
            resolution.combat_winner = winner
            self._end_combat(scene)
        return resolution

    async def _conclude(self, scene: Scene, persona: Persona, winner: str) -> str:
        raw = await self._oracle.complete(
            system=persona.system_prompt,
            prompt=prompts.conclusion_prompt(scene, winner=winner),
            history=scene.trailing_history(self._rules.history_window),
            model=persona.model,
        )
        return decode(NarrationReply, raw).narration

    # ------------------------------------------------------------------
    # Mode transitions
    # ------------------------------------------------------------------

    def _start_combat(self, scene: Scene, descriptor: str, opponent_hp: int) -> None:
        """sandbox → sandbox_combat."""
        starting_hp = self._rules.starting_hp
        scene.mode = Mode.SANDBOX_COMBAT
        scene.player.hp = starting_hp
        scene.player.max_hp = starting_hp
        scene.opponent = Participant(descriptor, hp=opponent_hp, max_hp=opponent_hp)
        scene.round = 0
        logger.info("Scene %s entered combat with %s (hp=%d)", scene.scene_id, descriptor, opponent_hp)

    @staticmethod
    def _end_combat(scene: Scene) -> None:
        """sandbox_combat → sandbox; ``game_over`` is untouched."""
        logger.info("Scene %s left combat with %s", scene.scene_id, scene.opponent_name)
        scene.mode = Mode.SANDBOX
        scene.opponent = None
        scene.player.hp = 0
        scene.player.max_hp = 0
        scene.effects.clear(OPPONENT)
        scene.round = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _scene_lock(self, scene_id: str):
        """Hold the per-scene lock, dropping it once no turn holds or awaits it."""
        lock = self._locks.get(scene_id)
        if lock is None:
            lock = self._locks[scene_id] = asyncio.Lock()
        self._lock_users[scene_id] = self._lock_users.get(scene_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[scene_id] -= 1
            if not self._lock_users[scene_id]:
                del self._lock_users[scene_id]
                del self._locks[scene_id]

    def _persona_for(self, scene: Scene) -> Persona:
        try:
            return self._personas.get(scene.persona_id)
        except UnknownPersona:
            logger.warning(
                "Persona %r for scene %s is no longer registered; using %r",
                scene.persona_id,
                scene.scene_id,
                self._default_persona,
            )
            return self._personas.get(self._default_persona)

    async def _load(self, scene_id: str) -> Scene:
        try:
            return await self._store.load(scene_id)
        except StoreError as exc:
            logger.error("Loading scene %s failed: %s", scene_id, exc)
            raise PersistenceFailure(f"Scene {scene_id!r} could not be loaded.") from exc

    async def _persist(self, scene: Scene) -> None:
        try:
            await self._store.save(scene)
        except StoreError as exc:
            logger.error("Saving scene %s failed; turn discarded: %s", scene.scene_id, exc)
            raise PersistenceFailure(f"Scene {scene.scene_id!r} could not be saved.") from exc

    async def _render_media(
        self, scene: Scene, persona: Persona, narration: str, image_prompt: str | None = None
    ) -> MediaArtifacts:
        style = StyleContext.for_scene(scene, voice=persona.voice)
        return await self._media.render(narration, style, image_prompt=image_prompt, model=persona.model)
