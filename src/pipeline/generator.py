"""Generation orchestrator: prompt in, finished short video out.

prompt -> script -> narration -> footage -> music -> clips -> merge ->
captions + style render -> loop extension -> audio mix -> output file

Each job owns a private workspace directory that is removed when the job
ends, successfully or not. Shared state lives only in the durable caches.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Callable, List, Optional

from models.generation import GenerationJob, GenerationOptions, ScriptResult
from pipeline.caption_engine import caption_text_for, write_subtitles
from pipeline.script_generator import ScriptGenerator
from pipeline.video_composer import VideoComposer
from services.ai_service import AIService
from services.footage_acquisition import FootageAcquisitionCascade, FootageAcquisitionError
from services.footage_store import FootageStore
from services.music_service import MusicService
from services.narration_service import NarrationService
from services.record_store import RecordStore
from services.tts_service import SpeechSynthesizer
from services.video_sources import PexelsVideoSource
from utils.cache import VoiceoverCache
from utils.logging import clear_job_context, set_job_context
from utils.progress import GenerationStage, ProgressChannel, callback_listener
from utils.retry import ConfigurationError

logger = logging.getLogger(__name__)

# Narration is padded so the last word is not cut by the fade
VOICE_PADDING_SECONDS = 1.0


def publish_output(source: Path, dest: Path) -> Path:
    """Move a finished video into the output directory.

    The file is staged next to ``dest`` and renamed into place, so ``dest``
    only ever appears complete.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    staging = dest.with_name(f".{dest.name}.part")
    try:
        shutil.move(str(source), str(staging))
        os.replace(staging, dest)
    except BaseException:
        staging.unlink(missing_ok=True)
        raise
    return dest


class GenerationError(Exception):
    """Raised when a job fails; carries the per-scene notices gathered so far."""

    def __init__(self, message: str, notices: Optional[List[str]] = None):
        super().__init__(message)
        self.notices = list(notices or [])


class VideoGenerator:
    """Runs generation jobs.

    The generator keeps no per-job state, so one instance can run several
    jobs concurrently.
    """

    def __init__(
        self,
        cascade: FootageAcquisitionCascade,
        composer: VideoComposer,
        output_dir: str | Path,
        narration: Optional[NarrationService] = None,
        music: Optional[MusicService] = None,
        script_generator: Optional[ScriptGenerator] = None,
        record_store: Optional[RecordStore] = None,
        temp_dir: Optional[str] = None,
        max_scenes: int = 5,
    ):
        self.cascade = cascade
        self.composer = composer
        self.output_dir = Path(output_dir)
        self.narration = narration
        self.music = music
        self.script_generator = script_generator
        self.record_store = record_store
        self.temp_dir = temp_dir
        self.max_scenes = max_scenes

    @classmethod
    def from_config(cls, config: dict, record_store: RecordStore) -> "VideoGenerator":
        """Wire the default services from a ``load_config()`` dict."""
        provider = PexelsVideoSource(api_key=config.get("pexels_api_key") or "")
        footage_store = FootageStore(record_store, provider, config["clip_cache_dir"])
        cascade = FootageAcquisitionCascade.build(
            record_store,
            provider,
            footage_store,
            tier_timeout=config["tier_timeout_seconds"],
            max_duration=config["clip_max_duration"],
        )

        narration = NarrationService(
            SpeechSynthesizer(
                api_key=config.get("openai_api_key") or "",
                base_url=config["tts_base_url"],
                model=config["tts_model"],
            ),
            VoiceoverCache(
                config["voiceover_cache_dir"],
                max_size_gb=config["voiceover_cache_max_size_gb"],
            ),
        )

        script_generator = None
        if config.get("gemini_api_key"):
            ai_service = AIService(config["gemini_api_key"], config["gemini_model"])
            script_generator = ScriptGenerator(ai_service, max_scenes=config["max_scenes"])

        composer = VideoComposer(
            extension_tolerance=config["extension_tolerance_seconds"],
            timeout=config["ffmpeg_timeout_seconds"],
            title_overlay=config["title_overlay_enabled"],
        )

        return cls(
            cascade=cascade,
            composer=composer,
            output_dir=config["output_dir"],
            narration=narration,
            music=MusicService(config["music_dir"]),
            script_generator=script_generator,
            record_store=record_store,
            temp_dir=config.get("temp_dir"),
            max_scenes=config["max_scenes"],
        )

    async def close(self) -> None:
        """Release HTTP clients held by the services."""
        if self.narration is not None:
            await self.narration.synthesizer.close()
            self.narration.cache.close()
        if self.music is not None:
            await self.music.close()

    # ------------------------------------------------------------------
    # Job
    # ------------------------------------------------------------------

    async def generate(
        self,
        options: GenerationOptions,
        on_progress: Optional[Callable[[str, str], None]] = None,
        channel: Optional[ProgressChannel] = None,
        job_id: Optional[str] = None,
    ) -> Path:
        """Produce a video for ``options`` and return the output file path.

        Args:
            options: The request
            on_progress: Called with ``(stage_name, message)`` at every milestone
            channel: Channel receiving typed progress events; created when omitted
            job_id: Identifier of an existing generation row, if any

        Raises:
            GenerationError: On any fatal failure (missing credentials, no
                footage for any scene, composition failure)
        """
        channel = channel or ProgressChannel()
        listener = callback_listener(on_progress) if on_progress else None
        if listener:
            channel.subscribe(listener)

        job_id = job_id or uuid.uuid4().hex[:12]
        set_job_context(job_id)
        job: Optional[GenerationJob] = None
        workspace: Optional[Path] = None

        try:
            self.cascade.ensure_configured()
            await self._record(job_id, status="processing", options=options)

            script = await self._resolve_script(options, channel)

            workspace = Path(tempfile.mkdtemp(prefix=f"job_{job_id}_", dir=self.temp_dir))
            job = GenerationJob(
                options=options,
                workspace=workspace,
                job_id=job_id,
                title=script.title,
                narration=script.narration,
                scenes=script.scenes[: self.max_scenes],
            )
            await self._record(
                job_id,
                title=job.title,
                narration=job.narration,
                scenes=[asdict(scene) for scene in job.scenes],
            )
            logger.info(f"Job started: '{job.title}' with {len(job.scenes)} scenes")

            await self._narrate(job, channel)
            paths = await self._acquire_footage(job, channel)
            await self._fetch_music(job, channel)
            output = await self._compose(job, paths, channel)

            await self._record(job_id, status="completed", result_path=str(output), notices=job.notices)
            channel.publish(
                GenerationStage.COMPLETE,
                "Video generated successfully!",
                percent=100,
                path=str(output),
                notices=list(job.notices),
            )
            logger.info(f"Job complete: {output}")
            return output

        except Exception as e:
            notices = list(job.notices) if job else []
            if isinstance(e, FootageAcquisitionError):
                notices = list(e.notices)
            message = str(e) or type(e).__name__
            logger.error(f"Job failed: {message}")

            channel.publish(GenerationStage.ERROR, message, notices=notices)
            await self._record(job_id, status="failed", error=message, notices=notices)
            raise GenerationError(message, notices) from e

        finally:
            if workspace is not None:
                await asyncio.to_thread(shutil.rmtree, workspace, True)
            if listener:
                channel.unsubscribe(listener)
            clear_job_context()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _resolve_script(self, options: GenerationOptions, channel: ProgressChannel) -> ScriptResult:
        if options.has_script:
            title = options.title or options.prompt[:60]
            channel.publish(GenerationStage.SCRIPT_READY, "Using provided script", title=title)
            return ScriptResult(title=title, narration=options.narration or "", scenes=list(options.scenes))

        if self.script_generator is None:
            raise ConfigurationError("GEMINI_API_KEY is not set")

        channel.publish(GenerationStage.ANALYZING, "Analyzing prompt with AI...")
        script = await asyncio.to_thread(
            self.script_generator.generate,
            options.prompt,
            options.duration,
            options.visual_style,
            options.language,
        )
        if options.narration:
            script.narration = options.narration
        channel.publish(
            GenerationStage.SCRIPT_READY,
            "Script generated",
            title=script.title,
            scenes=len(script.scenes),
        )
        return script

    async def _narrate(self, job: GenerationJob, channel: ProgressChannel) -> None:
        options = job.options
        text = caption_text_for(job.narration, job.scenes)
        if not options.include_speech or not text:
            return
        if self.narration is None or not self.narration.is_configured():
            job.notices.append("Narration skipped: speech synthesis is not configured")
            return

        channel.publish(GenerationStage.VOICEOVER, "Generating voiceover...")
        try:
            result = await self.narration.synthesize(
                text, options.language, job.workspace / "voiceover.mp3"
            )
        except Exception as e:
            logger.warning(f"Narration failed, continuing without voice: {e}")
            job.notices.append("Narration failed; the video has no voiceover")
            return

        job.voiceover_path = result.path
        try:
            voice_duration = await self.composer.probe_duration(result.path)
        except Exception as e:
            logger.warning(f"Could not read voiceover duration: {e}")
            voice_duration = 0.0

        job.target_duration = max(options.duration, voice_duration + VOICE_PADDING_SECONDS)
        source = "cache" if result.cache_hit else "synthesis"
        channel.publish(
            GenerationStage.VOICE_READY,
            f"Voiceover ready ({voice_duration:.1f}s from {source})",
            duration=voice_duration,
            cache_hit=result.cache_hit,
        )

    async def _acquire_footage(self, job: GenerationJob, channel: ProgressChannel) -> List[Path]:
        queries = job.search_queries[: self.max_scenes]
        channel.publish(GenerationStage.SEARCHING, f"Searching footage for {len(queries)} scenes...")

        result = await self.cascade.acquire(
            queries,
            job.options.orientation,
            job.workspace,
            used_ids=job.used_ids,
            on_progress=lambda message: channel.publish(GenerationStage.SEARCHING, message),
        )
        job.notices.extend(result.notices)

        if not result.paths:
            raise FootageAcquisitionError("No footage found for any scene", job.notices)

        channel.publish(
            GenerationStage.FOOTAGE_RESOLVED,
            f"Found footage for {len(result.paths)}/{len(queries)} scenes",
            clips=len(result.paths),
            from_cache=result.from_cache,
            from_library=result.from_library,
        )
        return result.paths

    async def _fetch_music(self, job: GenerationJob, channel: ProgressChannel) -> None:
        options = job.options
        if self.music is None or not options.music_mood or options.music_volume <= 0:
            return

        channel.publish(GenerationStage.MUSIC, f"Loading {options.music_mood} music...")
        try:
            job.music_path = await self.music.get_track(options.music_mood)
        except Exception as e:
            logger.warning(f"Music unavailable, continuing without it: {e}")
            job.notices.append("Background music unavailable")

    async def _compose(self, job: GenerationJob, clips: List[Path], channel: ProgressChannel) -> Path:
        options = job.options
        workspace = job.workspace

        processed = await self.composer.process_clips(
            clips, workspace, job.target_duration, options.orientation
        )
        channel.publish(GenerationStage.CLIPS_ENCODED, f"Encoded {len(processed)} clips")

        merged = await self.composer.concatenate(processed, workspace)
        channel.publish(GenerationStage.MERGED, "Clips merged")

        subtitles = write_subtitles(
            workspace / "captions.ass",
            job.narration,
            job.scenes,
            job.target_duration,
            options.orientation,
        )

        channel.publish(GenerationStage.RENDERING, "Rendering video...", percent=0)
        rendered = await self.composer.render(
            merged,
            workspace / "rendered.mp4",
            options.visual_style,
            subtitles,
            options.orientation,
            title=job.title,
            on_progress=lambda percent: channel.publish(
                GenerationStage.RENDERING, f"Rendering... {percent}%", percent=percent
            ),
        )
        channel.publish(GenerationStage.RENDERED, "Video rendered")

        if job.voiceover_path is not None:
            rendered = await self.composer.extend_to(rendered, job.target_duration, workspace)

        channel.publish(GenerationStage.FINALIZING, "Mixing audio...")
        mixed = await self.composer.mix_audio(
            rendered,
            workspace / "final.mp4",
            job.target_duration,
            voice_path=job.voiceover_path,
            music_path=job.music_path,
            music_volume=options.music_volume,
        )
        output = await asyncio.to_thread(
            publish_output, mixed, self.output_dir / f"{job.job_id}.mp4"
        )
        channel.publish(GenerationStage.FINALIZED, "Audio mixed")
        return output

    # ------------------------------------------------------------------
    # Status rows
    # ------------------------------------------------------------------

    async def _record(self, job_id: str, options: Optional[GenerationOptions] = None, **fields) -> None:
        if self.record_store is None:
            return
        try:
            if options is not None and await self.record_store.get_generation(job_id) is None:
                await self.record_store.create_generation(job_id, options.prompt, options.to_dict())
            await self.record_store.update_generation(job_id, **fields)
        except Exception as e:
            # Status rows are informational; a write failure never fails the job
            logger.warning(f"Could not update generation {job_id}: {e}")
