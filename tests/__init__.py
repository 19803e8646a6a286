# Force SQLModel table registration at test discovery time
import heatgen.models  # noqa: F401
